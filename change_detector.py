#!/usr/bin/env python3
"""
Change Detector
Decides whether freshly fetched case data differs from the stored snapshot
and describes the change for the user
"""

import logging
from typing import Optional

from models import CaseData, ProcessSnapshot
from snapshot_store import build_snapshot

logger = logging.getLogger(__name__)

MISSING_CASE_NUMBER = "sin radicación"
MISSING_ACTIVITY_DATE = "sin registrar"
MISSING_STATUS = "sin estado"


def has_changed(previous: Optional[str], current: Optional[str]) -> bool:
    """None vs None is unchanged, None vs a value (either way) is a change"""
    if previous is None and current is None:
        return False
    return previous != current


def _case_label(case: CaseData) -> str:
    return case.numero_radicacion or MISSING_CASE_NUMBER


def initial_message(current: ProcessSnapshot, case: CaseData) -> str:
    message = f"Proceso {_case_label(case)}: seguimiento iniciado."
    if current.last_activity_date is not None:
        message += f" Última actuación registrada el {current.last_activity_date}."
    if current.summary is not None:
        message += f" {current.summary}"
    return message


def change_message(current: ProcessSnapshot, case: CaseData,
                   activity_changed: bool, status_changed: bool, summary_changed: bool) -> str:
    message = f"Proceso {_case_label(case)}: se detectaron cambios."
    if activity_changed:
        message += f" Última actuación: {current.last_activity_date or MISSING_ACTIVITY_DATE}"
    if status_changed:
        message += f" Estado actualizado: {current.last_status or MISSING_STATUS}"
    if summary_changed and current.summary is not None:
        message += f" Detalle: {current.summary}"
    return message


def decide(previous: Optional[ProcessSnapshot], case: CaseData) -> Optional[str]:
    """
    Compare the stored snapshot with the current case data

    Args:
        previous: Stored snapshot, None when the case was never observed
        case: Freshly fetched case data

    Returns:
        A description of the change, or None when there is nothing to report
    """
    current = build_snapshot(case)

    if current.last_activity_date is None and current.last_status is None:
        return None

    if previous is None:
        return initial_message(current, case)

    activity_changed = has_changed(previous.last_activity_date, current.last_activity_date)
    status_changed = has_changed(previous.last_status, current.last_status)
    summary_changed = has_changed(previous.summary, current.summary)

    if not (activity_changed or status_changed or summary_changed):
        return None

    logger.debug(f"Process {_case_label(case)} changed: activity={activity_changed}, "
                 f"status={status_changed}, summary={summary_changed}")
    return change_message(current, case, activity_changed, status_changed, summary_changed)
