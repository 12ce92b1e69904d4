from __future__ import annotations

import asyncio
import re
from uuid import uuid4

import pytest

from app.exceptions import DuplicateKeyCode, InvalidProductRef, InvalidQuantity, NotFound
from app.models.registration_key import (
    KEY_ACTIVATED,
    KEY_DEACTIVATED,
    KEY_ISSUED,
    RegistrationKey,
    addon_ref,
    course_ref,
)
from app.repos.store import Store
from app.services import key_service, redemption_service
from tests.conftest import seed_course

_CODE_RE = re.compile(r"^XFLEX(-[ABCDEFGHJKLMNPQRSTUVWXYZ23456789]{5}){3}$")


def test_generate_code_format() -> None:
    for _ in range(200):
        assert _CODE_RE.match(key_service.generate_code("XFLEX"))


def test_generate_code_custom_prefix() -> None:
    assert key_service.generate_code("ACME").startswith("ACME-")


def test_issue_creates_issued_key(store: Store) -> None:
    course, _ = seed_course(store)
    key = asyncio.run(
        key_service.issue(store, product_ref=course_ref(course.id), price=4900, notes="promo")
    )
    assert key.state == KEY_ISSUED
    assert key.bound_email is None
    assert key.price == 4900
    assert key.course_id == course.id
    assert asyncio.run(store.keys.get_by_code(key.code)) == key


def test_issue_for_addon_needs_no_course(store: Store) -> None:
    key = asyncio.run(key_service.issue(store, product_ref=addon_ref("ai-analysis")))
    assert key.product_ref == "addon:ai-analysis"
    assert key.course_id is None


def test_issue_for_unknown_course_fails(store: Store) -> None:
    with pytest.raises(NotFound):
        asyncio.run(key_service.issue(store, product_ref=course_ref(uuid4())))


@pytest.mark.parametrize("ref", ["", "course:", "course:not-a-uuid", "video:1", "addon:a:b"])
def test_issue_rejects_malformed_product_ref(store: Store, ref: str) -> None:
    with pytest.raises(InvalidProductRef):
        asyncio.run(key_service.issue(store, product_ref=ref))


# ---- bulk ----


@pytest.mark.parametrize("quantity", [0, -1, 1001])
def test_issue_many_rejects_out_of_range_quantity(store: Store, quantity: int) -> None:
    course, _ = seed_course(store)
    with pytest.raises(InvalidQuantity):
        asyncio.run(
            key_service.issue_many(store, product_ref=course_ref(course.id), quantity=quantity)
        )
    assert asyncio.run(store.keys.statistics()).total == 0


def test_issue_many_max_batch_has_distinct_codes(store: Store) -> None:
    course, _ = seed_course(store)
    keys = asyncio.run(
        key_service.issue_many(store, product_ref=course_ref(course.id), quantity=1000)
    )
    assert len(keys) == 1000
    assert len({k.code for k in keys}) == 1000
    assert asyncio.run(store.keys.statistics()).total == 1000


def test_issue_many_retries_after_collision(
    store: Store, monkeypatch: pytest.MonkeyPatch
) -> None:
    course, _ = seed_course(store)
    existing = asyncio.run(key_service.issue(store, product_ref=course_ref(course.id)))

    codes = iter([existing.code, "XFLEX-AAAAA-BBBBB-CCCCC"])
    monkeypatch.setattr(key_service, "generate_code", lambda prefix=None: next(codes))

    key = asyncio.run(key_service.issue(store, product_ref=course_ref(course.id)))
    assert key.code == "XFLEX-AAAAA-BBBBB-CCCCC"
    assert asyncio.run(store.keys.statistics()).total == 2


def test_issue_gives_up_after_repeated_collisions(
    store: Store, monkeypatch: pytest.MonkeyPatch
) -> None:
    course, _ = seed_course(store)
    existing = asyncio.run(key_service.issue(store, product_ref=course_ref(course.id)))
    monkeypatch.setattr(key_service, "generate_code", lambda prefix=None: existing.code)

    with pytest.raises(RuntimeError):
        asyncio.run(key_service.issue(store, product_ref=course_ref(course.id)))


def test_repo_batch_insert_is_all_or_nothing(store: Store) -> None:
    ref = addon_ref("x")
    first = RegistrationKey.new(code="XFLEX-AAAAA-AAAAA-AAAAA", product_ref=ref, created_at=1)
    asyncio.run(store.keys.add_many([first]))

    batch = [
        RegistrationKey.new(code="XFLEX-BBBBB-BBBBB-BBBBB", product_ref=ref, created_at=2),
        RegistrationKey.new(code=first.code, product_ref=ref, created_at=2),
    ]
    with pytest.raises(DuplicateKeyCode):
        asyncio.run(store.keys.add_many(batch))
    assert asyncio.run(store.keys.get_by_code("XFLEX-BBBBB-BBBBB-BBBBB")) is None


# ---- deactivate ----


def test_deactivate_is_idempotent(store: Store) -> None:
    key = asyncio.run(key_service.issue(store, product_ref=addon_ref("x")))
    first = asyncio.run(key_service.deactivate(store, key.code))
    second = asyncio.run(key_service.deactivate(store, key.code))
    assert first.state == second.state == KEY_DEACTIVATED


def test_deactivate_keeps_bound_email(store: Store) -> None:
    key = asyncio.run(key_service.issue(store, product_ref=addon_ref("x")))
    asyncio.run(redemption_service.redeem(store, key.code, "a@example.com"))
    deactivated = asyncio.run(key_service.deactivate(store, key.code))
    assert deactivated.bound_email == "a@example.com"


def test_deactivate_accepts_lowercase_code(store: Store) -> None:
    key = asyncio.run(key_service.issue(store, product_ref=addon_ref("x")))
    assert asyncio.run(key_service.deactivate(store, key.code.lower())).code == key.code


def test_deactivate_unknown_code(store: Store) -> None:
    with pytest.raises(NotFound):
        asyncio.run(key_service.deactivate(store, "XFLEX-NOPE2-NOPE2-NOPE2"))


# ---- reporting ----


def test_statistics_and_listing(store: Store) -> None:
    course, _ = seed_course(store)
    ref = course_ref(course.id)
    keys = asyncio.run(key_service.issue_many(store, product_ref=ref, quantity=4))
    asyncio.run(key_service.issue(store, product_ref=addon_ref("other")))

    asyncio.run(redemption_service.redeem(store, keys[0].code, "a@example.com"))
    asyncio.run(redemption_service.redeem(store, keys[1].code, "b@example.com"))
    asyncio.run(key_service.deactivate(store, keys[1].code))
    asyncio.run(key_service.deactivate(store, keys[2].code))

    stats = asyncio.run(key_service.statistics(store, ref))
    assert (stats.total, stats.activated, stats.unused, stats.deactivated) == (4, 2, 1, 2)
    assert stats.activation_rate == 50

    assert asyncio.run(key_service.statistics(store)).total == 5

    activated = asyncio.run(key_service.list_keys(store, product_ref=ref, state=KEY_ACTIVATED))
    assert [k.code for k in activated] == [keys[0].code]

    by_email = asyncio.run(key_service.list_keys(store, email=" B@Example.com "))
    assert [k.code for k in by_email] == [keys[1].code]


def test_statistics_empty_rate_is_zero(store: Store) -> None:
    stats = asyncio.run(key_service.statistics(store))
    assert stats.total == 0
    assert stats.activation_rate == 0


def test_get_key_normalizes_code(store: Store) -> None:
    key = asyncio.run(key_service.issue(store, product_ref=addon_ref("x")))
    assert asyncio.run(key_service.get_key(store, f"  {key.code.lower()} ")) == key


def test_get_key_unknown_code(store: Store) -> None:
    with pytest.raises(NotFound):
        asyncio.run(key_service.get_key(store, "XFLEX-NOPE2-NOPE2-NOPE2"))
