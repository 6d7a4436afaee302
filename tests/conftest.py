"""
Shared fixtures: an in-memory table store and builders for case data.
"""

import itertools
from typing import Any, Dict, List, Optional, Sequence, Union
from unittest.mock import Mock

import pytest

from elasticsearch_client import PersistenceError
from models import CaseActivity, CaseData, FavoriteEntry
from notifier import NotificationDispatcher
from repositories import FavoriteRepository, NotificationRepository
from snapshot_store import SnapshotStore
from monitor import ProcessMonitor


class InMemoryTableStore:
    """TableStore double keeping every table in a dict of id -> record"""

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict]] = {}
        self.calls: List[tuple] = []
        self._ids = itertools.count(1)

    def _table(self, table: str) -> Dict[str, Dict]:
        return self.tables.setdefault(table, {})

    @staticmethod
    def _matches(doc_id: str, record: Dict, filters: Optional[Dict[str, Any]]) -> bool:
        for field, value in (filters or {}).items():
            if field == "id":
                if doc_id != str(value):
                    return False
            elif record.get(field) != value:
                return False
        return True

    def select(self, table, filters=None, sort=None, size=None, offset=0) -> List[Dict]:
        self.calls.append(("select", table, filters))
        rows = [{**record, "id": doc_id} for doc_id, record in self._table(table).items()
                if self._matches(doc_id, record, filters)]
        for clause in reversed(sort or []):
            field, options = next(iter(clause.items()))
            rows.sort(key=lambda row: row.get(field) or "", reverse=options.get("order") == "desc")
        rows = rows[offset:]
        return rows if size is None else rows[:size]

    def insert(self, table, record) -> Dict:
        self.calls.append(("insert", table, record))
        doc_id = str(next(self._ids))
        self._table(table)[doc_id] = dict(record)
        return {**record, "id": doc_id}

    def upsert(self, table, record, conflict_key: Union[str, Sequence[str]]) -> Dict:
        self.calls.append(("upsert", table, record))
        keys = [conflict_key] if isinstance(conflict_key, str) else list(conflict_key)
        doc_id = ":".join(str(record[key]) for key in keys)
        self._table(table)[doc_id] = dict(record)
        return {**record, "id": doc_id}

    def update(self, table, filters, changes) -> int:
        self.calls.append(("update", table, filters))
        updated = 0
        for doc_id, record in self._table(table).items():
            if self._matches(doc_id, record, filters):
                record.update(changes)
                updated += 1
        return updated

    def delete(self, table, filters) -> int:
        self.calls.append(("delete", table, filters))
        doomed = [doc_id for doc_id, record in self._table(table).items()
                  if self._matches(doc_id, record, filters)]
        for doc_id in doomed:
            del self._table(table)[doc_id]
        return len(doomed)

    def count(self, table, filters=None) -> int:
        return len(self.select(table, filters))

    def operations(self, name: str, table: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name and call[1] == table]


class FailingTableStore(InMemoryTableStore):
    """Raises PersistenceError for the configured (operation, table) pairs"""

    def __init__(self, failures):
        super().__init__()
        self.failures = set(failures)

    def _check(self, operation, table):
        if (operation, table) in self.failures:
            raise PersistenceError(f"{operation} on '{table}' failed: boom")

    def select(self, table, filters=None, sort=None, size=None, offset=0):
        self._check("select", table)
        return super().select(table, filters, sort, size, offset)

    def insert(self, table, record):
        self._check("insert", table)
        return super().insert(table, record)

    def upsert(self, table, record, conflict_key):
        self._check("upsert", table)
        return super().upsert(table, record, conflict_key)


def make_case(numero="2024-001", fecha_ultima_actuacion="2024-01-10", estado="Activo",
              actuaciones=None, **overrides) -> CaseData:
    if actuaciones is None:
        actuaciones = [CaseActivity(actuacion="Auto admite demanda", anotacion="Se admite la demanda")]
    return CaseData(
        id_proceso=1001,
        numero_radicacion=numero,
        fecha_proceso="2024-01-02T00:00:00",
        fecha_ultima_actuacion=fecha_ultima_actuacion,
        estado=estado,
        actuaciones=actuaciones,
        **overrides
    )


def make_favorite(user_id="user-1", numero="2024-001") -> FavoriteEntry:
    return FavoriteEntry(user_id=user_id, numero_radicacion=numero, despacho="Juzgado 01 Civil")


@pytest.fixture
def store():
    return InMemoryTableStore()


@pytest.fixture
def favorites(store):
    return FavoriteRepository(store)


@pytest.fixture
def notifications(store):
    return NotificationRepository(store)


@pytest.fixture
def snapshots(store):
    return SnapshotStore(store)


@pytest.fixture
def send_email():
    return Mock()


@pytest.fixture
def resolve_email():
    return Mock(side_effect=lambda user_id: f"{user_id}@example.com")


@pytest.fixture
def build_monitor(store, send_email, resolve_email):
    """Factory for a ProcessMonitor over the in-memory store"""
    def _build(fetch_case, enabled=True, table_store=None):
        backing = table_store or store
        return ProcessMonitor(
            favorites=FavoriteRepository(backing),
            snapshots=SnapshotStore(backing),
            dispatcher=NotificationDispatcher(NotificationRepository(backing), send_email),
            fetch_case=fetch_case,
            resolve_email=resolve_email,
            enabled=enabled,
            fetch_workers=2
        )
    return _build
