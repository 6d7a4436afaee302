#!/usr/bin/env python3
"""
Notification Dispatcher
Records an in-app notification for a favorite and tries to email its owner.
The two deliveries fail independently.
"""

import logging
from typing import Callable, Dict, Optional

from models import FavoriteEntry, NotificationRecord, NOTIFICATION_TYPE_IN_APP, utc_now
from repositories import NotificationRepository

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE_PREFIX = "Actualización en proceso"


class EmailLookupCache:
    """
    Email addresses resolved during one monitoring cycle, keyed by user id.
    Misses are remembered too; create a new cache for every cycle.
    """

    def __init__(self, resolve_email: Callable[[str], Optional[str]]):
        self._resolve_email = resolve_email
        self._emails: Dict[str, Optional[str]] = {}

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._emails

    def get(self, user_id: str) -> Optional[str]:
        if user_id in self._emails:
            return self._emails[user_id]

        email = None
        try:
            email = self._resolve_email(user_id)
        except Exception as e:
            logger.error(f"Error resolving email for user {user_id}: {e}")

        self._emails[user_id] = email or None
        return self._emails[user_id]


class NotificationDispatcher:

    def __init__(self, notifications: NotificationRepository,
                 send_update_email: Callable[[str, str, str], None]):
        self.notifications = notifications
        self.send_update_email = send_update_email

    def notify(self, favorite: FavoriteEntry, message: str, email_cache: EmailLookupCache) -> Optional[NotificationRecord]:
        """
        Create the in-app notification and attempt the email

        Returns:
            The stored notification, or None when it could not be stored
        """
        notification = self.create_notification(favorite, message)
        self.send_email_if_possible(favorite, message, email_cache)
        return notification

    def create_notification(self, favorite: FavoriteEntry, message: str) -> Optional[NotificationRecord]:
        numero = (favorite.numero_radicacion or "").strip()
        now = utc_now()
        record = NotificationRecord(
            user_id=favorite.user_id,
            process_id=None,
            title=f"{NOTIFICATION_TITLE_PREFIX} {numero}",
            message=message,
            is_read=False,
            type=NOTIFICATION_TYPE_IN_APP,
            created_at=now,
            sent_at=now
        )
        try:
            return self.notifications.create(record)
        except Exception as e:
            logger.error(f"❌ Failed to store notification for user {favorite.user_id} "
                         f"(process {numero}): {e}")
            return None

    def send_email_if_possible(self, favorite: FavoriteEntry, message: str, email_cache: EmailLookupCache) -> bool:
        email = email_cache.get(favorite.user_id)
        if not email:
            logger.debug(f"No email found for user {favorite.user_id} to send process update")
            return False

        try:
            self.send_update_email(email, (favorite.numero_radicacion or "").strip(), message)
            return True
        except Exception as e:
            logger.error(f"Failed to send process update email to {email}: {e}")
            return False
