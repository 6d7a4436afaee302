#!/usr/bin/env python3
"""
Repositories over the table store: favorites, notifications, stored processes
and consultation history
"""

import logging
from typing import List, Optional

from elasticsearch_client import TableStore
from models import CaseData, ConsultationRecord, FavoriteEntry, NotificationRecord, utc_now
from schema import CONSULTATIONS_TABLE, FAVORITES_TABLE, NOTIFICATIONS_TABLE, PROCESSES_TABLE

logger = logging.getLogger(__name__)

NEWEST_FIRST = [{"created_at": {"order": "desc"}}]


def _favorite_from_row(row: dict) -> FavoriteEntry:
    return FavoriteEntry(**{field: row.get(field) for field in FavoriteEntry.model_fields})


def _notification_from_row(row: dict) -> NotificationRecord:
    return NotificationRecord(**{field: row.get(field) for field in NotificationRecord.model_fields
                                 if row.get(field) is not None})


class FavoriteRepository:
    """One favorite per (user_id, numero_radicacion)"""

    def __init__(self, store: TableStore):
        self.store = store

    def list_all_favorites(self) -> List[FavoriteEntry]:
        return [_favorite_from_row(row) for row in self.store.select(FAVORITES_TABLE)]

    def list_for_user(self, user_id: str) -> List[FavoriteEntry]:
        rows = self.store.select(FAVORITES_TABLE, {"user_id": user_id}, sort=NEWEST_FIRST)
        return [_favorite_from_row(row) for row in rows]

    def get(self, user_id: str, numero_radicacion: str) -> Optional[FavoriteEntry]:
        rows = self.store.select(
            FAVORITES_TABLE,
            {"user_id": user_id, "numero_radicacion": numero_radicacion},
            size=1
        )
        return _favorite_from_row(rows[0]) if rows else None

    def add(self, favorite: FavoriteEntry) -> FavoriteEntry:
        """Store the favorite unless the user already has it; returns the stored entry"""
        existing = self.get(favorite.user_id, favorite.numero_radicacion)
        if existing is not None:
            logger.debug(f"Process {favorite.numero_radicacion} already in favorites of user {favorite.user_id}")
            return existing

        if favorite.created_at is None:
            favorite = favorite.model_copy(update={"created_at": utc_now()})
        self.store.upsert(FAVORITES_TABLE, favorite.model_dump(), ("user_id", "numero_radicacion"))
        logger.info(f"Process {favorite.numero_radicacion} added to favorites of user {favorite.user_id}")
        return favorite

    def remove(self, user_id: str, numero_radicacion: str) -> bool:
        deleted = self.store.delete(FAVORITES_TABLE, {"user_id": user_id, "numero_radicacion": numero_radicacion})
        return deleted > 0


class NotificationRepository:
    """Append-only notifications; only the read flag ever changes"""

    def __init__(self, store: TableStore):
        self.store = store

    def create(self, notification: NotificationRecord) -> NotificationRecord:
        row = self.store.insert(NOTIFICATIONS_TABLE, notification.to_record())
        return notification.model_copy(update={"id": row["id"]})

    def list_for_user(self, user_id: str, limit: int = 50, offset: int = 0) -> List[NotificationRecord]:
        rows = self.store.select(NOTIFICATIONS_TABLE, {"user_id": user_id},
                                 sort=NEWEST_FIRST, size=limit, offset=offset)
        return [_notification_from_row(row) for row in rows]

    def list_unread(self, user_id: str, limit: int = 50) -> List[NotificationRecord]:
        rows = self.store.select(NOTIFICATIONS_TABLE, {"user_id": user_id, "is_read": False},
                                 sort=NEWEST_FIRST, size=limit)
        return [_notification_from_row(row) for row in rows]

    def mark_as_read(self, notification_id: str) -> bool:
        updated = self.store.update(NOTIFICATIONS_TABLE, {"id": notification_id},
                                    {"is_read": True, "read_at": utc_now()})
        return updated > 0

    def mark_all_as_read(self, user_id: str) -> int:
        return self.store.update(NOTIFICATIONS_TABLE, {"user_id": user_id, "is_read": False},
                                 {"is_read": True, "read_at": utc_now()})


class ProcessRepository:
    """Last consulted state of each case, one document per case number"""

    def __init__(self, store: TableStore):
        self.store = store

    def save(self, case: CaseData) -> CaseData:
        """Store the full case, replacing any earlier copy"""
        numero = (case.numero_radicacion or "").strip()
        case = case.model_copy(update={"numero_radicacion": numero})
        self.store.upsert(PROCESSES_TABLE, {**case.model_dump(), "updated_at": utc_now()}, "numero_radicacion")
        logger.info(f"💾 Saved process {numero}: {len(case.actuaciones)} activities, "
                    f"{len(case.sujetos)} subjects, {len(case.documentos)} documents")
        return case

    def get(self, numero_radicacion: str) -> Optional[CaseData]:
        rows = self.store.select(PROCESSES_TABLE, {"numero_radicacion": numero_radicacion.strip()}, size=1)
        if not rows:
            return None
        return CaseData(**{field: rows[0][field] for field in CaseData.model_fields if rows[0].get(field) is not None})


class ConsultationRepository:

    def __init__(self, store: TableStore):
        self.store = store

    def log(self, consultation: ConsultationRecord) -> ConsultationRecord:
        if consultation.created_at is None:
            consultation = consultation.model_copy(update={"created_at": utc_now()})
        row = self.store.insert(CONSULTATIONS_TABLE, consultation.to_record())
        return consultation.model_copy(update={"id": row["id"]})

    def list_for_user(self, user_id: str, limit: int = 10) -> List[ConsultationRecord]:
        rows = self.store.select(CONSULTATIONS_TABLE, {"user_id": user_id}, sort=NEWEST_FIRST, size=limit)
        return [ConsultationRecord(**{field: row.get(field) for field in ConsultationRecord.model_fields
                                      if row.get(field) is not None})
                for row in rows]
