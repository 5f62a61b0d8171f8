"""
Clerk webhook processing: verified event in, user synchronization out.
"""

from __future__ import annotations

import logging
from typing import Optional

from cropyield.db import DbClient
from cropyield.errors import DownstreamError
from cropyield.events import UnhandledEvent, UserCreatedEvent, WebhookEvent
from cropyield.users import sync_user

logger = logging.getLogger(__name__)


def handle_event(event: WebhookEvent, db: DbClient) -> Optional[str]:
    """Apply a verified event. Returns the new user id when one was created.

    Raises:
        DownstreamError: the user synchronization failed, whatever the cause
            (store errors, driver errors such as a lost connection)
    """
    if isinstance(event, UserCreatedEvent):
        data = event.data
        if not data.email:
            logger.warning("user.created for %s carries no email address", data.id)
        try:
            return sync_user(
                db,
                clerk_id=data.id,
                email=data.email,
                name=data.full_name,
                username=data.username or "",
                phone=data.phone,
                location="",
                image=data.image_url,
            )
        except Exception as exc:
            raise DownstreamError(f"Error creating user {data.id}") from exc

    if isinstance(event, UnhandledEvent):
        logger.debug("Ignoring webhook event type %s", event.type)
    return None
