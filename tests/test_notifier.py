"""
Tests for notification dispatch and the per-cycle email cache
"""

from unittest.mock import Mock

from models import NOTIFICATION_TYPE_IN_APP
from notifier import EmailLookupCache, NotificationDispatcher
from repositories import NotificationRepository
from schema import NOTIFICATIONS_TABLE

from conftest import FailingTableStore, make_favorite


class TestEmailLookupCache:

    def test_resolves_each_user_once(self, resolve_email):
        cache = EmailLookupCache(resolve_email)

        assert cache.get("user-1") == "user-1@example.com"
        assert cache.get("user-1") == "user-1@example.com"

        resolve_email.assert_called_once_with("user-1")
        assert "user-1" in cache

    def test_misses_are_remembered(self):
        resolve = Mock(return_value=None)
        cache = EmailLookupCache(resolve)

        assert cache.get("ghost") is None
        assert cache.get("ghost") is None
        resolve.assert_called_once()

    def test_resolution_error_is_cached_as_miss(self):
        resolve = Mock(side_effect=RuntimeError("identity provider down"))
        cache = EmailLookupCache(resolve)

        assert cache.get("user-1") is None
        assert cache.get("user-1") is None
        resolve.assert_called_once()

    def test_empty_email_counts_as_miss(self):
        cache = EmailLookupCache(Mock(return_value=""))
        assert cache.get("user-1") is None


class TestNotificationDispatcher:

    def test_stores_in_app_notification_and_sends_email(self, store, notifications, send_email, resolve_email):
        dispatcher = NotificationDispatcher(notifications, send_email)

        record = dispatcher.notify(make_favorite(), "Proceso 2024-001: cambios", EmailLookupCache(resolve_email))

        assert record.id is not None
        assert record.title == "Actualización en proceso 2024-001"
        assert record.type == NOTIFICATION_TYPE_IN_APP
        assert record.is_read is False
        assert record.created_at == record.sent_at
        assert len(store.tables[NOTIFICATIONS_TABLE]) == 1
        send_email.assert_called_once_with("user-1@example.com", "2024-001", "Proceso 2024-001: cambios")

    def test_email_failure_keeps_notification(self, store, notifications, resolve_email):
        send_email = Mock(side_effect=OSError("smtp down"))
        dispatcher = NotificationDispatcher(notifications, send_email)

        record = dispatcher.notify(make_favorite(), "mensaje", EmailLookupCache(resolve_email))

        assert record is not None
        assert len(store.tables[NOTIFICATIONS_TABLE]) == 1

    def test_storage_failure_still_sends_email(self, send_email, resolve_email):
        failing = NotificationRepository(FailingTableStore({("insert", NOTIFICATIONS_TABLE)}))
        dispatcher = NotificationDispatcher(failing, send_email)

        record = dispatcher.notify(make_favorite(), "mensaje", EmailLookupCache(resolve_email))

        assert record is None
        send_email.assert_called_once()

    def test_no_email_skips_delivery(self, notifications, send_email):
        dispatcher = NotificationDispatcher(notifications, send_email)

        record = dispatcher.notify(make_favorite(), "mensaje", EmailLookupCache(Mock(return_value=None)))

        assert record is not None
        send_email.assert_not_called()

    def test_title_and_email_use_trimmed_case_number(self, notifications, send_email, resolve_email):
        dispatcher = NotificationDispatcher(notifications, send_email)

        record = dispatcher.notify(make_favorite(numero=" 2024-001 "), "mensaje", EmailLookupCache(resolve_email))

        assert record.title == "Actualización en proceso 2024-001"
        send_email.assert_called_once_with("user-1@example.com", "2024-001", "mensaje")
