"""Registration key issuance and administration.

Codes look like ``XFLEX-7KQ2M-A9FHD-PW3XN``: a configurable prefix and three
groups of five characters drawn with ``secrets`` from an alphabet without
the look-alikes I, O, 0 and 1.  Uniqueness is enforced by the store; on a
collision the whole batch is regenerated.
"""

from __future__ import annotations

import datetime
import logging
import secrets
from uuid import UUID

from app.core.config import SETTINGS
from app.core.logging import mask_code
from app.core.metrics import KEYS_ISSUED
from app.exceptions import DuplicateKeyCode, InvalidQuantity, NotFound
from app.models.registration_key import (
    KeyStatistics,
    RegistrationKey,
    course_id_of,
    parse_product_ref,
)
from app.models.user import normalize_email
from app.repos.store import Store

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
_GROUPS = 3
_GROUP_LEN = 5
_CODE_ATTEMPTS = 5

MIN_BULK = 1
MAX_BULK = 1000


def generate_code(prefix: str | None = None) -> str:
    groups = (
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(_GROUP_LEN))
        for _ in range(_GROUPS)
    )
    return "-".join([prefix or SETTINGS.key_code_prefix, *groups])


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def issue(
    store: Store,
    *,
    product_ref: str,
    notes: str | None = None,
    price: int | None = None,
    expires_at: int | None = None,
    created_by: UUID | None = None,
) -> RegistrationKey:
    keys = await issue_many(
        store,
        product_ref=product_ref,
        quantity=1,
        notes=notes,
        price=price,
        expires_at=expires_at,
        created_by=created_by,
    )
    return keys[0]


async def issue_many(
    store: Store,
    *,
    product_ref: str,
    quantity: int,
    notes: str | None = None,
    price: int | None = None,
    expires_at: int | None = None,
    created_by: UUID | None = None,
) -> list[RegistrationKey]:
    """Create ``quantity`` issued keys for one product, all or nothing."""
    if not MIN_BULK <= quantity <= MAX_BULK:
        raise InvalidQuantity(quantity, MIN_BULK, MAX_BULK)

    kind, _ = parse_product_ref(product_ref)
    course_id = course_id_of(product_ref)
    if course_id is not None and await store.courses.get_course(course_id) is None:
        raise NotFound("course", course_id)

    now = int(datetime.datetime.now(datetime.UTC).timestamp())
    for attempt in range(1, _CODE_ATTEMPTS + 1):
        keys = [
            RegistrationKey.new(
                code=generate_code(),
                product_ref=product_ref,
                created_at=now,
                price=price,
                notes=notes,
                expires_at=expires_at,
                created_by=created_by,
            )
            for _ in range(quantity)
        ]
        try:
            await store.keys.add_many(keys)
        except DuplicateKeyCode:
            logger.warning(
                "Key code collision, regenerating attempt=%d quantity=%d",
                attempt,
                quantity,
            )
            continue
        KEYS_ISSUED.labels(product_kind=kind).inc(quantity)
        logger.info(
            "Issued registration keys product_ref=%s quantity=%d",
            product_ref,
            quantity,
        )
        return keys

    raise RuntimeError(f"could not generate unique key codes in {_CODE_ATTEMPTS} attempts")


async def get_key(store: Store, code: str) -> RegistrationKey:
    key = await store.keys.get_by_code(normalize_code(code))
    if key is None:
        raise NotFound("registration key")
    return key


async def deactivate(store: Store, code: str) -> RegistrationKey:
    """Move a key to deactivated.  Re-deactivating is a no-op."""
    code = normalize_code(code)
    key = await store.keys.deactivate(code)
    if key is None:
        raise NotFound("registration key")
    masked = mask_code(code)
    logger.info("Registration key deactivated code=%s", masked, extra={"key_code": masked})
    return key


async def list_keys(
    store: Store,
    *,
    product_ref: str | None = None,
    state: str | None = None,
    email: str | None = None,
) -> list[RegistrationKey]:
    if product_ref is not None:
        parse_product_ref(product_ref)
    return await store.keys.list_keys(
        product_ref=product_ref,
        state=state,
        bound_email=normalize_email(email) if email else None,
    )


async def statistics(store: Store, product_ref: str | None = None) -> KeyStatistics:
    if product_ref is not None:
        parse_product_ref(product_ref)
    return await store.keys.statistics(product_ref)
