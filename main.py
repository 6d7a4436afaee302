#!/usr/bin/env python3
"""
Main FastAPI application - Entry point
"""

import asyncio
import logging
from fastapi import FastAPI

from config import API_HOST, API_PORT, API_TITLE, API_DESCRIPTION, API_VERSION, LOG_FILE, LOG_LEVEL, LOG_FORMAT
from config import ES_HOST, PORTAL_API_URL, MONITORING_ENABLED, MONITORING_INTERVAL, MONITORING_INITIAL_DELAY, FETCH_WORKERS
from models import monitor_state
from api_endpoints import (
    root, get_status, start_monitoring, stop_monitoring, process_now, get_stats, consult_process,
    save_process, get_stored_process, get_process_activities, get_process_subjects, get_consultation_history,
    list_favorites, add_favorite, check_favorite, remove_favorite,
    list_notifications, list_unread_notifications, mark_notification_read, mark_all_notifications_read
)
from monitor import monitor_and_process

# === Setup Logging ===
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format=LOG_FORMAT,
    handlers=[
        logging.FileHandler(LOG_FILE),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# === FastAPI App ===
app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION
)

# === Register Routes ===
app.add_api_route("/", root, methods=["GET"])
app.add_api_route("/status", get_status, methods=["GET"])
app.add_api_route("/start", start_monitoring, methods=["POST"])
app.add_api_route("/stop", stop_monitoring, methods=["POST"])
app.add_api_route("/process-now", process_now, methods=["POST"])
app.add_api_route("/stats", get_stats, methods=["GET"])
app.add_api_route("/consult/{case_number}", consult_process, methods=["GET"])
app.add_api_route("/processes", save_process, methods=["POST"])
app.add_api_route("/processes/{case_number}", get_stored_process, methods=["GET"])
app.add_api_route("/processes/{case_number}/activities", get_process_activities, methods=["GET"])
app.add_api_route("/processes/{case_number}/subjects", get_process_subjects, methods=["GET"])
app.add_api_route("/users/{user_id}/consultation-history", get_consultation_history, methods=["GET"])

app.add_api_route("/users/{user_id}/favorites", list_favorites, methods=["GET"])
app.add_api_route("/users/{user_id}/favorites", add_favorite, methods=["POST"])
app.add_api_route("/users/{user_id}/favorites/{case_number}", check_favorite, methods=["GET"])
app.add_api_route("/users/{user_id}/favorites/{case_number}", remove_favorite, methods=["DELETE"])

app.add_api_route("/users/{user_id}/notifications", list_notifications, methods=["GET"])
app.add_api_route("/users/{user_id}/notifications/unread", list_unread_notifications, methods=["GET"])
app.add_api_route("/users/{user_id}/notifications/read-all", mark_all_notifications_read, methods=["POST"])
app.add_api_route("/notifications/{notification_id}/read", mark_notification_read, methods=["POST"])

_monitor_task = None


@app.on_event("startup")
async def startup_event():
    """Run on application startup"""
    global _monitor_task
    logger.info("=" * 70)
    logger.info(f"🚀 {API_TITLE} Started")
    logger.info("=" * 70)
    logger.info(f"Elasticsearch: {ES_HOST}")
    logger.info(f"Judicial portal: {PORTAL_API_URL}")
    logger.info(f"Monitoring enabled: {MONITORING_ENABLED}")
    logger.info(f"Check Interval: {MONITORING_INTERVAL} seconds (first check after {MONITORING_INITIAL_DELAY} seconds)")
    logger.info(f"Fetch workers: {FETCH_WORKERS}")
    logger.info("=" * 70)

    # Auto-start monitoring (even if Elasticsearch is down - every cycle retries the connection)
    logger.info("🔄 Auto-starting monitoring...")
    monitor_state["is_running"] = True
    _monitor_task = asyncio.create_task(monitor_and_process())
    logger.info("✅ Monitoring task started!")


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown"""
    monitor_state["is_running"] = False
    if _monitor_task is not None:
        _monitor_task.cancel()
    logger.info("=" * 70)
    logger.info(f"🛑 {API_TITLE} Stopped")
    logger.info(f"Total monitoring cycles: {monitor_state['total_cycles']}")
    logger.info("=" * 70)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=API_HOST, port=API_PORT)
