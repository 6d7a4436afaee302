#!/usr/bin/env python3
"""
Process snapshot store
One snapshot per case number: the baseline the change detector compares against
"""

import logging
from typing import Optional

from elasticsearch_client import PersistenceError, TableStore
from models import CaseActivity, CaseData, ProcessSnapshot
from schema import SNAPSHOTS_TABLE

logger = logging.getLogger(__name__)

SUMMARY_SEPARATOR = " - "


def summarize_activity(activity: Optional[CaseActivity]) -> Optional[str]:
    """
    Summary of one activity: its description, then its annotation when not blank

    Returns:
        "<actuacion> - <anotacion>", either part alone, or None when both are empty
    """
    if activity is None:
        return None

    parts = []
    if activity.actuacion is not None:
        parts.append(activity.actuacion)
    if activity.anotacion is not None and activity.anotacion.strip():
        parts.append(activity.anotacion)

    summary = SUMMARY_SEPARATOR.join(part for part in parts if part)
    return summary or None


def build_snapshot(case: CaseData) -> ProcessSnapshot:
    """Snapshot of the fields the change detector looks at"""
    return ProcessSnapshot(
        process_number=case.numero_radicacion or "",
        process_id=str(case.id_proceso) if case.id_proceso is not None else None,
        last_activity_date=case.fecha_ultima_actuacion,
        last_decision_date=case.fecha_proceso,
        last_status=case.estado,
        summary=summarize_activity(case.latest_activity)
    )


class SnapshotStore:
    """Reads and writes process snapshots through the table store"""

    def __init__(self, store: TableStore):
        self.store = store

    def get(self, process_number: str) -> Optional[ProcessSnapshot]:
        """Stored snapshot for the case number, None on first observation"""
        try:
            rows = self.store.select(SNAPSHOTS_TABLE, {"process_number": process_number}, size=1)
        except PersistenceError as e:
            logger.error(f"Error fetching snapshot for process {process_number}: {e}")
            raise

        if not rows:
            return None

        row = rows[0]
        return ProcessSnapshot(
            process_number=row.get("process_number") or process_number,
            process_id=row.get("process_id"),
            last_activity_date=row.get("last_activity_date"),
            last_decision_date=row.get("last_decision_date"),
            last_status=row.get("last_status"),
            summary=row.get("summary")
        )

    def upsert(self, snapshot: ProcessSnapshot) -> None:
        """Replace the stored snapshot for snapshot.process_number"""
        try:
            self.store.upsert(SNAPSHOTS_TABLE, snapshot.model_dump(), "process_number")
        except PersistenceError as e:
            logger.error(f"Error upserting snapshot for process {snapshot.process_number}: {e}")
            raise
