#!/usr/bin/env python3
"""
Background monitoring of favorite processes

Each cycle fetches every favorited case once, compares it with its stored
snapshot and notifies every user following a case that changed.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional

from config import MONITORING_ENABLED, MONITORING_INTERVAL, MONITORING_INITIAL_DELAY, FETCH_WORKERS
from models import CaseData, FavoriteEntry, monitor_state, utc_now
from change_detector import decide
from snapshot_store import SnapshotStore, build_snapshot
from notifier import EmailLookupCache, NotificationDispatcher
from repositories import FavoriteRepository, NotificationRepository
from elasticsearch_client import ensure_indices, get_table_store
from portal_client import fetch_case
from identity_client import resolve_email
from email_client import send_process_update

logger = logging.getLogger(__name__)

MAX_TRACKED_ERRORS = 10


class ProcessMonitor:
    """
    Runs monitoring cycles over all favorites

    Cycles never overlap: run_cycle holds a lock for the whole pass.
    """

    def __init__(self, favorites: FavoriteRepository, snapshots: SnapshotStore,
                 dispatcher: NotificationDispatcher,
                 fetch_case: Callable[[str, bool], Optional[CaseData]],
                 resolve_email: Callable[[str], Optional[str]],
                 enabled: bool = MONITORING_ENABLED, fetch_workers: int = FETCH_WORKERS):
        self.favorites = favorites
        self.snapshots = snapshots
        self.dispatcher = dispatcher
        self.fetch_case = fetch_case
        self.resolve_email = resolve_email
        self.enabled = enabled
        self.fetch_workers = max(1, fetch_workers)
        self._cycle_lock = threading.Lock()

    @property
    def is_cycle_running(self) -> bool:
        return self._cycle_lock.locked()

    def run_cycle(self, blocking: bool = True) -> Optional[int]:
        """
        Run one monitoring pass

        Args:
            blocking: Wait for a running cycle to finish instead of giving up

        Returns:
            Number of processes with a detected change, None if another cycle was running
        """
        if not self._cycle_lock.acquire(blocking=blocking):
            logger.warning("⚠️ A monitoring cycle is already running, skipping")
            return None
        try:
            return self._run_cycle()
        finally:
            self._cycle_lock.release()

    def _run_cycle(self) -> int:
        if not self.enabled:
            logger.debug("Process monitoring disabled by configuration")
            return 0

        logger.info("Starting favorite processes monitoring cycle")
        changed = 0
        try:
            changed = self._process_favorites()
        except Exception as e:
            logger.error(f"❌ Error in monitoring cycle: {e}")
        logger.info("Finished favorite processes monitoring cycle")
        return changed

    def _process_favorites(self) -> int:
        favorites = self.favorites.list_all_favorites()
        if not favorites:
            logger.debug("No favorite processes registered")
            return 0

        # Favorites grouped by case number, in listing order
        by_process: Dict[str, List[FavoriteEntry]] = {}
        for favorite in favorites:
            numero = (favorite.numero_radicacion or "").strip()
            if not numero:
                continue
            by_process.setdefault(numero, []).append(favorite)

        case_cache = self.fetch_cases(list(by_process))
        email_cache = EmailLookupCache(self.resolve_email)

        changed = 0
        for numero, entries in by_process.items():
            case = case_cache.get(numero)
            if case is None:
                logger.debug(f"No data retrieved for process {numero}")
                continue
            try:
                if self.process_case(numero, case, entries, email_cache):
                    changed += 1
            except Exception as e:
                logger.error(f"❌ Error processing process {numero}: {e}")
        return changed

    def fetch_cases(self, numeros: List[str]) -> Dict[str, Optional[CaseData]]:
        """Fetch each distinct case number once; failures are kept as None"""
        if not numeros:
            return {}
        workers = min(self.fetch_workers, len(numeros))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return dict(zip(numeros, pool.map(self._fetch_latest, numeros)))

    def _fetch_latest(self, numero: str) -> Optional[CaseData]:
        try:
            return self.fetch_case(numero, False)
        except Exception as e:
            logger.error(f"Unable to fetch data for process {numero}: {e}")
            return None

    def process_case(self, numero: str, case: CaseData, favorites: List[FavoriteEntry],
                     email_cache: EmailLookupCache) -> bool:
        """
        Compare one case with its snapshot and notify its followers on change

        Returns:
            True if a change was detected
        """
        try:
            previous = self.snapshots.get(numero)
        except Exception as e:
            logger.error(f"Unable to read snapshot for process {numero}, skipping: {e}")
            return False

        message = decide(previous, case)
        if message is None:
            return False

        # Keyed by the favorited number so the next cycle reads it back
        snapshot = build_snapshot(case).model_copy(update={"process_number": numero})
        try:
            self.snapshots.upsert(snapshot)
        except Exception as e:
            logger.error(f"❌ Failed to persist snapshot for process {numero}: {e}")

        for favorite in favorites:
            try:
                self.dispatcher.notify(favorite, message, email_cache)
            except Exception as e:
                logger.error(f"❌ Failed to notify user {favorite.user_id} about process {numero}: {e}")
        return True


_monitor: Optional[ProcessMonitor] = None
_monitor_lock = threading.Lock()
_loop_generation = 0


def build_monitor() -> ProcessMonitor:
    """Wire a monitor to the configured Elasticsearch, portal, identity provider and SMTP server"""
    store = get_table_store()
    return ProcessMonitor(
        favorites=FavoriteRepository(store),
        snapshots=SnapshotStore(store),
        dispatcher=NotificationDispatcher(NotificationRepository(store), send_process_update),
        fetch_case=fetch_case,
        resolve_email=resolve_email
    )


def get_monitor() -> ProcessMonitor:
    """Shared monitor; every caller gets the same instance and therefore the same cycle lock"""
    global _monitor
    with _monitor_lock:
        if _monitor is None:
            _monitor = build_monitor()
    return _monitor


def record_error(error: Exception) -> None:
    monitor_state["errors"].append({
        "timestamp": utc_now(),
        "error": str(error)
    })
    # Keep only last 10 errors
    monitor_state["errors"] = monitor_state["errors"][-MAX_TRACKED_ERRORS:]


def run_monitoring_cycle(blocking: bool = True) -> Optional[int]:
    """Run one cycle of the shared monitor and record it in monitor_state"""
    monitor = get_monitor()
    monitor_state["last_check"] = utc_now()

    if monitor.enabled and not ensure_indices():
        logger.error("❌ Elasticsearch indices unavailable, will retry in next cycle...")
        return 0

    changed = monitor.run_cycle(blocking=blocking)
    if changed is not None:
        monitor_state["total_cycles"] += 1
        monitor_state["last_changes_detected"] = changed
        monitor_state["last_cycle_finished"] = utc_now()
    return changed


async def monitor_and_process(initial_delay: int = MONITORING_INITIAL_DELAY):
    """Background task: run a cycle, then wait MONITORING_INTERVAL seconds, until stopped"""
    global _loop_generation
    _loop_generation += 1
    generation = _loop_generation

    logger.info("🔄 Starting continuous monitoring...")
    if initial_delay > 0:
        await asyncio.sleep(initial_delay)

    while monitor_state["is_running"] and generation == _loop_generation:
        try:
            await asyncio.to_thread(run_monitoring_cycle)
        except Exception as e:
            logger.error(f"Error in monitoring loop: {e}")
            record_error(e)

        # Wait before next check
        await asyncio.sleep(MONITORING_INTERVAL)

    logger.info("🛑 Monitoring stopped")
