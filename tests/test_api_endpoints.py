"""
Tests for the control API
"""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

import api_endpoints
from elasticsearch_client import PersistenceError
from main import app
from models import monitor_state
from schema import CONSULTATIONS_TABLE, FAVORITES_TABLE, NOTIFICATIONS_TABLE, PROCESSES_TABLE

from conftest import FailingTableStore, InMemoryTableStore, make_case


@pytest.fixture
def store():
    return InMemoryTableStore()


@pytest.fixture
def client(store):
    saved_state = dict(monitor_state)
    with patch.object(api_endpoints, "ensure_indices", return_value=True), \
            patch.object(api_endpoints, "get_table_store", return_value=store):
        # Without a context manager the startup event (and its monitor loop) does not run
        yield TestClient(app)
    monitor_state.clear()
    monitor_state.update(saved_state)


def test_root_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "/process-now" in response.json()["endpoints"]


class TestMonitoringControl:

    def test_status(self, client):
        shared = Mock(enabled=True, is_cycle_running=False)
        with patch.object(api_endpoints, "get_monitor", return_value=shared):
            body = client.get("/status").json()

        assert body["enabled"] is True
        assert body["cycle_in_progress"] is False
        assert "check_interval_seconds" in body

    def test_start_and_stop(self, client):
        monitor_state["is_running"] = False
        loop = AsyncMock()
        with patch.object(api_endpoints, "monitor_and_process", loop):
            assert client.post("/start").status_code == 200
            assert client.post("/start").status_code == 400

        loop.assert_called_once_with(0)
        assert client.post("/stop").status_code == 200
        assert client.post("/stop").status_code == 400
        assert monitor_state["is_running"] is False

    def test_process_now(self, client):
        with patch.object(api_endpoints, "run_monitoring_cycle", return_value=2) as run:
            response = client.post("/process-now")

        assert response.status_code == 200
        assert response.json()["processes_changed"] == 2
        run.assert_called_once_with(blocking=False)

    def test_process_now_while_cycle_running(self, client):
        with patch.object(api_endpoints, "run_monitoring_cycle", return_value=None):
            assert client.post("/process-now").status_code == 409

    def test_stats(self, client, store):
        store.insert(FAVORITES_TABLE, {"user_id": "u1", "numero_radicacion": "2024-001"})

        body = client.get("/stats").json()

        assert body["tables"][FAVORITES_TABLE] == 1
        assert body["tables"][NOTIFICATIONS_TABLE] == 0


class TestConsult:

    def test_found(self, client):
        with patch.object(api_endpoints, "fetch_case", return_value=make_case()) as fetch:
            response = client.get("/consult/2024-001", params={"active_only": "true"})

        assert response.status_code == 200
        assert response.json()["numero_radicacion"] == "2024-001"
        fetch.assert_called_once_with("2024-001", True)

    def test_not_found(self, client):
        with patch.object(api_endpoints, "fetch_case", return_value=None):
            assert client.get("/consult/2024-404").status_code == 404

    def test_consulted_process_is_stored_and_logged(self, client, store):
        with patch.object(api_endpoints, "fetch_case", return_value=make_case()):
            response = client.get("/consult/2024-001", params={"user_id": "u1"},
                                  headers={"User-Agent": "pytest"})

        assert response.status_code == 200
        assert list(store.tables[PROCESSES_TABLE]) == ["2024-001"]
        [entry] = store.tables[CONSULTATIONS_TABLE].values()
        assert entry["user_id"] == "u1"
        assert entry["result_status"] == "success"
        assert entry["user_agent"] == "pytest"

    def test_consult_without_saving(self, client, store):
        with patch.object(api_endpoints, "fetch_case", return_value=make_case()):
            assert client.get("/consult/2024-001", params={"save": "false"}).status_code == 200

        assert PROCESSES_TABLE not in store.tables

    def test_failed_consultations_are_logged(self, client, store):
        with patch.object(api_endpoints, "fetch_case", return_value=None):
            client.get("/consult/2024-404")
        with patch.object(api_endpoints, "fetch_case", side_effect=RuntimeError("boom")):
            assert client.get("/consult/2024-500").status_code == 500

        statuses = sorted(e["result_status"] for e in store.tables[CONSULTATIONS_TABLE].values())
        assert statuses == ["error", "not_found"]

    def test_storage_failure_does_not_fail_consultation(self, client):
        failing = FailingTableStore({("upsert", PROCESSES_TABLE), ("insert", CONSULTATIONS_TABLE)})
        with patch.object(api_endpoints, "get_table_store", return_value=failing), \
                patch.object(api_endpoints, "fetch_case", return_value=make_case()):
            assert client.get("/consult/2024-001").status_code == 200


class TestStoredProcesses:

    def test_save_and_read_back(self, client):
        body = make_case(numero="2024-009").model_dump()

        assert client.post("/processes", json=body).status_code == 200
        assert client.get("/processes/2024-009").json()["numero_radicacion"] == "2024-009"

        activities = client.get("/processes/2024-009/activities").json()
        assert activities["data"][0]["actuacion"] == "Auto admite demanda"
        assert client.get("/processes/2024-009/subjects").json() == {"success": True, "data": []}

    def test_save_requires_case_number(self, client):
        assert client.post("/processes", json={"estado": "Activo"}).status_code == 400

    def test_unknown_process(self, client):
        assert client.get("/processes/2024-404").status_code == 404
        assert client.get("/processes/2024-404/activities").status_code == 404

    def test_consultation_history(self, client):
        with patch.object(api_endpoints, "fetch_case", return_value=make_case()):
            client.get("/consult/2024-001", params={"user_id": "u1"})
            client.get("/consult/2024-001", params={"user_id": "u2"})

        body = client.get("/users/u1/consultation-history").json()

        assert body["success"] is True
        assert [e["numero_radicacion"] for e in body["data"]] == ["2024-001"]


class TestFavorites:

    def test_add_list_check_remove(self, client):
        response = client.post("/users/u1/favorites", json={"numero_radicacion": " 2024-001 ", "despacho": "Juzgado"})
        assert response.status_code == 200
        assert response.json()["already_favorite"] is False
        assert response.json()["favorite"]["numero_radicacion"] == "2024-001"

        again = client.post("/users/u1/favorites", json={"numero_radicacion": "2024-001"})
        assert again.json()["already_favorite"] is True

        listing = client.get("/users/u1/favorites").json()
        assert listing["count"] == 1

        assert client.get("/users/u1/favorites/2024-001").json() == {"is_favorite": True}
        assert client.delete("/users/u1/favorites/2024-001").status_code == 200
        assert client.get("/users/u1/favorites/2024-001").json() == {"is_favorite": False}
        assert client.delete("/users/u1/favorites/2024-001").status_code == 404

    def test_case_number_required(self, client):
        assert client.post("/users/u1/favorites", json={"despacho": "Juzgado"}).status_code == 400

    def test_storage_failure(self, client):
        failing = FailingTableStore({("select", FAVORITES_TABLE)})
        with patch.object(api_endpoints, "get_table_store", return_value=failing):
            response = client.get("/users/u1/favorites")

        assert response.status_code == 500
        assert response.json()["detail"] == "Error al obtener favoritos"


class TestNotifications:

    @pytest.fixture
    def seeded(self, store):
        for user_id, created_at in (("u1", "2024-01-01T00:00:00"), ("u1", "2024-01-02T00:00:00"),
                                    ("u2", "2024-01-03T00:00:00")):
            store.insert(NOTIFICATIONS_TABLE, {
                "user_id": user_id, "title": "Actualización en proceso 2024-001", "message": "cambios",
                "is_read": False, "type": "in_app", "created_at": created_at, "sent_at": created_at
            })
        return store

    def test_list_and_unread(self, client, seeded):
        listing = client.get("/users/u1/notifications", params={"limit": 1}).json()
        assert listing["count"] == 1
        assert listing["notifications"][0]["created_at"] == "2024-01-02T00:00:00"

        assert client.get("/users/u1/notifications/unread").json()["count"] == 2

    def test_mark_one_and_all(self, client, seeded):
        assert client.post("/notifications/1/read").status_code == 200
        assert client.get("/users/u1/notifications/unread").json()["count"] == 1

        response = client.post("/users/u1/notifications/read-all")
        assert response.json()["updated"] == 1
        assert client.get("/users/u2/notifications/unread").json()["count"] == 1

    def test_mark_unknown_notification(self, client, seeded):
        assert client.post("/notifications/999/read").status_code == 404

    def test_update_failure(self, client):
        with patch.object(api_endpoints.NotificationRepository, "mark_all_as_read",
                          side_effect=PersistenceError("down")):
            assert client.post("/users/u1/notifications/read-all").status_code == 500
