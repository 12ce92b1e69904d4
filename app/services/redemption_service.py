"""One-time registration key redemption.

An issued key is bound to the redeeming email by a compare-and-set in the
key store; of any number of concurrent redemptions exactly one wins.  The
losers re-read the key and get the same answer a later retry would: success
for the winning email, KeyAlreadyUsed for everyone else.  Expiry is part of
the same compare-and-set, so a key cannot be activated after its deadline.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass

from app.core.logging import mask_code
from app.core.metrics import KEY_REDEMPTIONS
from app.exceptions import KeyAlreadyUsed, KeyDeactivated, KeyExpired, NotFound
from app.models.registration_key import (
    KEY_ACTIVATED,
    KEY_DEACTIVATED,
    KEY_ISSUED,
    RegistrationKey,
)
from app.models.user import normalize_email
from app.repos.store import Store
from app.services.access_service import ensure_enrollment
from app.services.key_service import normalize_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RedemptionResult:
    product_ref: str
    newly_activated: bool
    enrollment_created: bool = False


def _settle_existing(key: RegistrationKey, email: str, now: int) -> None:
    """Raise unless ``key`` is already activated for ``email``."""
    if key.state == KEY_DEACTIVATED:
        KEY_REDEMPTIONS.labels(outcome="deactivated").inc()
        raise KeyDeactivated()
    if key.state == KEY_ISSUED and key.is_expired(now):
        KEY_REDEMPTIONS.labels(outcome="expired").inc()
        raise KeyExpired()
    if key.state != KEY_ACTIVATED or key.bound_email != email:
        KEY_REDEMPTIONS.labels(outcome="already_used").inc()
        logger.warning("Redemption of used key rejected code=%s", mask_code(key.code))
        raise KeyAlreadyUsed()


async def redeem(store: Store, code: str, email: str) -> RedemptionResult:
    code = normalize_code(code)
    email = normalize_email(email)
    now = int(datetime.datetime.now(datetime.UTC).timestamp())

    key = await store.keys.get_by_code(code)
    if key is None:
        KEY_REDEMPTIONS.labels(outcome="not_found").inc()
        raise NotFound("registration key")

    if key.state in (KEY_DEACTIVATED, KEY_ACTIVATED):
        _settle_existing(key, email, now)
        newly_activated = False
    else:
        # The store refuses expired keys inside the same compare-and-set
        activated = await store.keys.activate(code, email, now)
        if activated is None:
            current = await store.keys.get_by_code(code)
            if current is None:
                raise NotFound("registration key")
            _settle_existing(current, email, now)
            key, newly_activated = current, False
        else:
            key, newly_activated = activated, True

    KEY_REDEMPTIONS.labels(outcome="activated" if newly_activated else "idempotent").inc()
    if newly_activated:
        logger.info(
            "Registration key activated code=%s product_ref=%s",
            mask_code(code),
            key.product_ref,
            extra={"key_code": mask_code(code)},
        )

    enrollment_created = False
    course_id = key.course_id
    if course_id is not None:
        user = await store.users.get_by_email(email)
        if user is not None:
            _, enrollment_created = await ensure_enrollment(
                store, user.id, course_id, registration_key_id=key.id, now=now
            )

    return RedemptionResult(
        product_ref=key.product_ref,
        newly_activated=newly_activated,
        enrollment_created=enrollment_created,
    )
