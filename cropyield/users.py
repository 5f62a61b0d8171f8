"""
User synchronization from Clerk into the local users table.
"""

from __future__ import annotations

import logging
from typing import Optional

from cropyield.db import DbClient, Role, UserRecord

logger = logging.getLogger(__name__)


def sync_user(
    db: DbClient,
    *,
    clerk_id: str,
    email: str,
    name: str = "",
    username: str = "",
    phone: str = "",
    location: str = "",
    image: Optional[str] = None,
    role: Optional[Role] = None,
) -> Optional[str]:
    """
    Create the user for ``clerk_id`` or update the role of an existing one.

    An existing user only ever has its role patched, and only when ``role``
    is given and differs from the stored value; profile fields are never
    overwritten. Returns the new user id on insert, ``None`` otherwise.

    Two concurrent calls for an unseen ``clerk_id`` can both miss the lookup;
    the store's unique index on ``clerk_id`` rejects the second insert with
    ``DuplicateRecordError``, which is left to propagate.
    """
    existing = db.get_user_by_clerk_id(clerk_id)
    if existing:
        if role and existing.role != role:
            db.patch_user_role(existing.id, role)
            logger.info(
                "Updated role for clerk_id=%s: %s -> %s", clerk_id, existing.role, role
            )
        return None

    user_id = db.insert_user(
        UserRecord(
            clerk_id=clerk_id,
            name=name,
            username=username,
            email=email,
            phone=phone,
            location=location,
            image=image,
            role=role or "user",
        )
    )
    logger.info("Created user %s for clerk_id=%s", user_id, clerk_id)
    return user_id
