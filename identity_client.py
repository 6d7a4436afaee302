#!/usr/bin/env python3
"""
Identity provider lookup
Resolves a user's email address through the provider's admin users endpoint
"""

import logging
from typing import Optional

import requests

from config import IDENTITY_URL, IDENTITY_SERVICE_KEY, IDENTITY_TIMEOUT

logger = logging.getLogger(__name__)


def resolve_email(user_id: str) -> Optional[str]:
    """Return the email registered for user_id, or None when it cannot be resolved"""
    if not IDENTITY_URL or not user_id:
        return None

    response = requests.get(
        f"{IDENTITY_URL}/admin/users/{user_id}",
        headers={
            "apikey": IDENTITY_SERVICE_KEY,
            "Authorization": f"Bearer {IDENTITY_SERVICE_KEY}"
        },
        timeout=IDENTITY_TIMEOUT
    )
    if response.status_code == 404:
        return None
    response.raise_for_status()

    email = response.json().get("email")
    return email or None
