"""Learner directory sync.

Accounts are owned by the platform's identity service.  The engine keeps a
minimal copy (id, email, name, roles) so a redeemed key's email can be
matched to a learner and a learner's email looked up for key-based access.
"""

from __future__ import annotations

import logging
from uuid import UUID

from app.exceptions import EmailTaken
from app.models.user import User, normalize_email
from app.repos.store import Store

logger = logging.getLogger(__name__)


async def upsert_user(
    store: Store,
    *,
    user_id: UUID,
    email: str,
    name: str = "",
    roles: tuple[str, ...] = (),
) -> tuple[User, bool]:
    """Register a learner under ``user_id`` unless already known.

    Returns (user, created).  An existing id is returned unchanged; an email
    already held by a different id raises EmailTaken.
    """
    email = normalize_email(email)
    if not email:
        raise ValueError("email must be non-empty")

    existing = await store.users.get_by_id(user_id)
    if existing is not None:
        if existing.email != email:
            logger.warning("User sync email mismatch user_id=%s", user_id)
            raise EmailTaken()
        return existing, False

    other = await store.users.get_by_email(email)
    if other is not None:
        logger.warning("Rejected duplicate email for user_id=%s", user_id)
        raise EmailTaken()

    user = User(id=user_id, email=email, name=name, roles=roles)
    await store.users.add(user)
    logger.info("User registered user_id=%s", user.id, extra={"user_id": str(user.id)})
    return user, True

