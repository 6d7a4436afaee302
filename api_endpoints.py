#!/usr/bin/env python3
"""
FastAPI route handlers
"""

import asyncio
import logging
from typing import Optional, Set, Tuple

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from config import MONITORING_INTERVAL, API_TITLE, API_VERSION
from models import CaseData, ConsultationRecord, FavoriteEntry, FavoriteRequest, monitor_state
from elasticsearch_client import PersistenceError, TableStore, ensure_indices, get_table_store, get_table_stats
from repositories import ConsultationRepository, FavoriteRepository, NotificationRepository, ProcessRepository
from monitor import get_monitor, monitor_and_process, run_monitoring_cycle
from portal_client import fetch_case

logger = logging.getLogger(__name__)

# Strong references to running monitor loops
_background_tasks: Set[asyncio.Task] = set()


def _store() -> TableStore:
    ensure_indices()
    return get_table_store()


def _repositories() -> Tuple[FavoriteRepository, NotificationRepository]:
    store = _store()
    return FavoriteRepository(store), NotificationRepository(store)


async def root():
    """Root endpoint with API information"""
    return {
        "message": API_TITLE,
        "version": API_VERSION,
        "endpoints": {
            "/status": "Get current monitoring status",
            "/start": "Start continuous monitoring",
            "/stop": "Stop monitoring",
            "/process-now": "Run one monitoring cycle immediately",
            "/stats": "Get monitoring statistics",
            "/consult/{case_number}": "Consult a process on the judicial portal and store it",
            "/processes/{case_number}": "Stored process data, activities and subjects",
            "/users/{user_id}/consultation-history": "Consultations made by a user",
            "/users/{user_id}/favorites": "List, add and remove favorite processes",
            "/users/{user_id}/notifications": "List notifications and mark them as read"
        }
    }


async def get_status():
    """Get current monitoring status"""
    monitor = get_monitor()
    return {
        "is_running": monitor_state["is_running"],
        "enabled": monitor.enabled,
        "cycle_in_progress": monitor.is_cycle_running,
        "last_check": monitor_state["last_check"],
        "last_cycle_finished": monitor_state["last_cycle_finished"],
        "total_cycles": monitor_state["total_cycles"],
        "last_changes_detected": monitor_state["last_changes_detected"],
        "check_interval_seconds": MONITORING_INTERVAL,
        "recent_errors": monitor_state["errors"][-5:]
    }


async def start_monitoring():
    """Start continuous monitoring"""
    if monitor_state["is_running"]:
        return JSONResponse(
            status_code=400,
            content={"error": "Monitoring is already running"}
        )

    monitor_state["is_running"] = True
    task = asyncio.create_task(monitor_and_process(0))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    logger.info("✅ Monitoring started")
    return {
        "message": "Monitoring started successfully",
        "check_interval_seconds": MONITORING_INTERVAL
    }


async def stop_monitoring():
    """Stop monitoring"""
    if not monitor_state["is_running"]:
        return JSONResponse(
            status_code=400,
            content={"error": "Monitoring is not running"}
        )

    monitor_state["is_running"] = False
    logger.info("Monitoring stopped by user request")

    return {
        "message": "Monitoring stopped successfully",
        "total_cycles": monitor_state["total_cycles"]
    }


def process_now():
    """Run one monitoring cycle immediately (manual trigger)"""
    logger.info("🚀 Manual monitoring cycle triggered")
    changed = run_monitoring_cycle(blocking=False)
    if changed is None:
        raise HTTPException(status_code=409, detail="A monitoring cycle is already running")

    return {
        "message": "Monitoring cycle completed",
        "processes_changed": changed
    }


def get_stats():
    """Get detailed statistics"""
    ensure_indices()
    return {
        "tables": get_table_stats(get_table_store()),
        "monitor": {
            "is_running": monitor_state["is_running"],
            "total_cycles": monitor_state["total_cycles"],
            "last_check": monitor_state["last_check"],
            "last_changes_detected": monitor_state["last_changes_detected"]
        }
    }


def _log_consultation(http_request: Request, user_id: Optional[str], numero: str,
                      result_status: str, error_message: Optional[str] = None) -> None:
    consultation = ConsultationRecord(
        user_id=user_id,
        numero_radicacion=numero,
        result_status=result_status,
        error_message=error_message,
        ip_address=http_request.client.host if http_request.client else None,
        user_agent=http_request.headers.get("user-agent")
    )
    try:
        ConsultationRepository(_store()).log(consultation)
    except PersistenceError as e:
        logger.error(f"Error logging consultation: {e}")


def consult_process(case_number: str, http_request: Request, active_only: bool = False,
                    user_id: Optional[str] = None, save: bool = True):
    """Consult a process on the judicial portal, store it and log the consultation"""
    numero = case_number.strip()
    try:
        case = fetch_case(numero, active_only)
    except Exception as e:
        logger.error(f"❌ Error consulting process {numero}: {e}")
        _log_consultation(http_request, user_id, numero, "error", str(e))
        raise HTTPException(status_code=500, detail="Error al consultar el proceso")

    if case is None:
        _log_consultation(http_request, user_id, numero, "not_found")
        raise HTTPException(status_code=404, detail=f"Process {numero} not found")

    if save:
        try:
            ProcessRepository(_store()).save(case)
        except PersistenceError as e:
            logger.error(f"Error saving consulted process {numero}: {e}")

    _log_consultation(http_request, user_id, numero, "success")
    return case.model_dump()


# === Stored processes ===

def save_process(case: CaseData):
    """Store process data that was consulted elsewhere"""
    if not (case.numero_radicacion or "").strip():
        raise HTTPException(status_code=400, detail="Datos del proceso requeridos")

    try:
        stored = ProcessRepository(_store()).save(case)
    except PersistenceError as e:
        logger.error(f"Error saving process data: {e}")
        raise HTTPException(status_code=500, detail="Error al guardar el proceso")
    return {"message": "Proceso guardado", "process": stored.model_dump()}


def _stored_process(case_number: str) -> CaseData:
    try:
        case = ProcessRepository(_store()).get(case_number)
    except PersistenceError as e:
        logger.error(f"Error getting process from database: {e}")
        raise HTTPException(status_code=500, detail="Error interno del servidor")

    if case is None:
        raise HTTPException(status_code=404, detail="Proceso no encontrado")
    return case


def get_stored_process(case_number: str):
    return _stored_process(case_number).model_dump()


def get_process_activities(case_number: str):
    case = _stored_process(case_number)
    return {"success": True, "data": [activity.model_dump() for activity in case.actuaciones]}


def get_process_subjects(case_number: str):
    case = _stored_process(case_number)
    return {"success": True, "data": [subject.model_dump() for subject in case.sujetos]}


def get_consultation_history(user_id: str, limit: int = 10):
    try:
        history = ConsultationRepository(_store()).list_for_user(user_id, limit=limit)
    except PersistenceError as e:
        logger.error(f"Get consultation history error: {e}")
        raise HTTPException(status_code=500, detail="Error interno del servidor")
    return {"success": True, "data": [entry.model_dump() for entry in history]}


# === Favorites ===

def list_favorites(user_id: str):
    favorites, _ = _repositories()
    try:
        entries = favorites.list_for_user(user_id)
    except PersistenceError as e:
        logger.error(f"Error fetching favorites: {e}")
        raise HTTPException(status_code=500, detail="Error al obtener favoritos")
    return {"favorites": [entry.model_dump() for entry in entries], "count": len(entries)}


def add_favorite(user_id: str, request: FavoriteRequest):
    numero = (request.numero_radicacion or "").strip()
    if not numero:
        raise HTTPException(status_code=400, detail="Número de radicación requerido")

    favorites, _ = _repositories()
    try:
        existing = favorites.get(user_id, numero)
        if existing is not None:
            return {"message": "El proceso ya está en favoritos", "favorite": existing.model_dump(),
                    "already_favorite": True}

        entry = favorites.add(FavoriteEntry(user_id=user_id, **request.model_dump(exclude={"numero_radicacion"}),
                                            numero_radicacion=numero))
    except PersistenceError as e:
        logger.error(f"Error saving favorite process: {e}")
        raise HTTPException(status_code=500, detail="Error al guardar el proceso")

    return {"message": "Proceso agregado a favoritos", "favorite": entry.model_dump(), "already_favorite": False}


def check_favorite(user_id: str, case_number: str):
    favorites, _ = _repositories()
    try:
        entry = favorites.get(user_id, case_number)
    except PersistenceError as e:
        logger.error(f"Error checking favorite: {e}")
        raise HTTPException(status_code=500, detail="Error al verificar favorito")
    return {"is_favorite": entry is not None}


def remove_favorite(user_id: str, case_number: str):
    favorites, _ = _repositories()
    try:
        removed = favorites.remove(user_id, case_number)
    except PersistenceError as e:
        logger.error(f"Error removing favorite: {e}")
        raise HTTPException(status_code=500, detail="Error al remover favorito")

    if not removed:
        raise HTTPException(status_code=404, detail="El proceso no está en favoritos")
    return {"message": "Proceso removido de favoritos"}


# === Notifications ===

def list_notifications(user_id: str, limit: int = 50, offset: int = 0):
    _, notifications = _repositories()
    try:
        records = notifications.list_for_user(user_id, limit=limit, offset=offset)
    except PersistenceError as e:
        logger.error(f"Error fetching notifications: {e}")
        raise HTTPException(status_code=500, detail="Error al obtener las notificaciones")
    return {"notifications": [record.model_dump() for record in records], "count": len(records)}


def list_unread_notifications(user_id: str, limit: int = 50):
    _, notifications = _repositories()
    try:
        records = notifications.list_unread(user_id, limit=limit)
    except PersistenceError as e:
        logger.error(f"Error fetching unread notifications: {e}")
        raise HTTPException(status_code=500, detail="Error al obtener las notificaciones")
    return {"notifications": [record.model_dump() for record in records], "count": len(records)}


def mark_notification_read(notification_id: str):
    _, notifications = _repositories()
    try:
        updated = notifications.mark_as_read(notification_id)
    except PersistenceError as e:
        logger.error(f"Error marking notification as read: {e}")
        raise HTTPException(status_code=500, detail="Error al actualizar la notificación")

    if not updated:
        raise HTTPException(status_code=404, detail="Notificación no encontrada")
    return {"message": "Notificación marcada como leída"}


def mark_all_notifications_read(user_id: str):
    _, notifications = _repositories()
    try:
        updated = notifications.mark_all_as_read(user_id)
    except PersistenceError as e:
        logger.error(f"Error marking notifications as read: {e}")
        raise HTTPException(status_code=500, detail="Error al actualizar las notificaciones")
    return {"message": "Notificaciones marcadas como leídas", "updated": updated}
