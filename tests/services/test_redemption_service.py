from __future__ import annotations

import asyncio
import threading
import time

import pytest

from app.exceptions import KeyAlreadyUsed, KeyDeactivated, KeyExpired, NotFound
from app.models.enrollment import Enrollment
from app.models.registration_key import KEY_ACTIVATED, KEY_ISSUED, addon_ref, course_ref
from app.repos.store import Store
from app.services import key_service
from app.services.redemption_service import redeem
from tests.conftest import seed_course, seed_user


def _course_key(store: Store, **kwargs):
    course, _ = seed_course(store)
    key = asyncio.run(key_service.issue(store, product_ref=course_ref(course.id), **kwargs))
    return course, key


def test_redeem_activates_and_binds_normalized_email(store: Store) -> None:
    course, key = _course_key(store)
    result = asyncio.run(redeem(store, key.code, "  Learner@Example.COM "))

    assert result.product_ref == course_ref(course.id)
    assert result.newly_activated

    stored = asyncio.run(store.keys.get_by_code(key.code))
    assert stored is not None
    assert stored.state == KEY_ACTIVATED
    assert stored.bound_email == "learner@example.com"
    assert stored.activated_at is not None


def test_redeem_is_idempotent_for_same_email(store: Store) -> None:
    _, key = _course_key(store)
    first = asyncio.run(redeem(store, key.code, "a@example.com"))
    activated_at = asyncio.run(store.keys.get_by_code(key.code)).activated_at

    second = asyncio.run(redeem(store, key.code.lower(), "A@EXAMPLE.com"))
    assert second.product_ref == first.product_ref
    assert not second.newly_activated
    assert asyncio.run(store.keys.get_by_code(key.code)).activated_at == activated_at


def test_redeem_by_other_email_fails(store: Store) -> None:
    _, key = _course_key(store)
    asyncio.run(redeem(store, key.code, "a@example.com"))
    with pytest.raises(KeyAlreadyUsed):
        asyncio.run(redeem(store, key.code, "b@example.com"))
    assert asyncio.run(store.keys.get_by_code(key.code)).bound_email == "a@example.com"


def test_redeem_unknown_code(store: Store) -> None:
    with pytest.raises(NotFound):
        asyncio.run(redeem(store, "XFLEX-ZZZZZ-ZZZZZ-ZZZZZ", "a@example.com"))


def test_redeem_deactivated_key(store: Store) -> None:
    _, key = _course_key(store)
    asyncio.run(key_service.deactivate(store, key.code))
    with pytest.raises(KeyDeactivated):
        asyncio.run(redeem(store, key.code, "a@example.com"))


def test_redeem_deactivated_key_even_for_bound_email(store: Store) -> None:
    _, key = _course_key(store)
    asyncio.run(redeem(store, key.code, "a@example.com"))
    asyncio.run(key_service.deactivate(store, key.code))
    with pytest.raises(KeyDeactivated):
        asyncio.run(redeem(store, key.code, "a@example.com"))


def test_redeem_expired_key(store: Store) -> None:
    _, key = _course_key(store, expires_at=int(time.time()) - 60)
    with pytest.raises(KeyExpired):
        asyncio.run(redeem(store, key.code, "a@example.com"))


def test_expiry_does_not_affect_already_activated_key(store: Store) -> None:
    _, key = _course_key(store, expires_at=int(time.time()) + 3600)
    asyncio.run(redeem(store, key.code, "a@example.com"))
    # Idempotent retry still succeeds, whatever the clock says later
    assert not asyncio.run(redeem(store, key.code, "a@example.com")).newly_activated


# ---- enrollment side effect ----


def test_redeem_creates_enrollment_for_known_user(store: Store) -> None:
    user = seed_user(store, "a@example.com")
    course, key = _course_key(store)

    result = asyncio.run(redeem(store, key.code, "a@example.com"))
    assert result.enrollment_created

    enrollment = asyncio.run(store.enrollments.get(user.id, course.id))
    assert enrollment is not None
    assert enrollment.progress_percentage == 0
    assert enrollment.registration_key_id == key.id


def test_redeem_without_account_defers_enrollment(store: Store) -> None:
    _, key = _course_key(store)
    result = asyncio.run(redeem(store, key.code, "new@example.com"))
    assert result.newly_activated
    assert not result.enrollment_created


def test_redeem_never_touches_existing_enrollment(store: Store) -> None:
    user = seed_user(store, "a@example.com")
    course, key = _course_key(store)
    asyncio.run(
        store.enrollments.ensure(
            Enrollment(
                user_id=user.id, course_id=course.id, enrolled_at=1, progress_percentage=40
            )
        )
    )
    result = asyncio.run(redeem(store, key.code, "a@example.com"))
    assert not result.enrollment_created
    enrollment = asyncio.run(store.enrollments.get(user.id, course.id))
    assert enrollment.progress_percentage == 40
    assert enrollment.enrolled_at == 1


def test_redeem_addon_key_creates_no_enrollment(store: Store) -> None:
    seed_user(store, "a@example.com")
    key = asyncio.run(key_service.issue(store, product_ref=addon_ref("ai-analysis")))
    result = asyncio.run(redeem(store, key.code, "a@example.com"))
    assert result.product_ref == "addon:ai-analysis"
    assert not result.enrollment_created


# ---- concurrency ----


def test_concurrent_redemptions_activate_once_async(store: Store) -> None:
    _, key = _course_key(store)
    emails = [f"user{i}@example.com" for i in range(20)]

    async def _race():
        return await asyncio.gather(
            *(redeem(store, key.code, e) for e in emails), return_exceptions=True
        )

    results = asyncio.run(_race())
    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert all(isinstance(r, KeyAlreadyUsed) for r in losers)

    stored = asyncio.run(store.keys.get_by_code(key.code))
    assert stored.bound_email == emails[results.index(winners[0])]


def test_concurrent_redemptions_activate_once_threads(store: Store) -> None:
    _, key = _course_key(store)
    outcomes: list[str] = []
    lock = threading.Lock()
    barrier = threading.Barrier(16)

    def _attempt(i: int) -> None:
        barrier.wait()
        try:
            asyncio.run(redeem(store, key.code, f"t{i}@example.com"))
            outcome = "won"
        except KeyAlreadyUsed:
            outcome = "lost"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=_attempt, args=(i,)) for i in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("won") == 1
    assert outcomes.count("lost") == 15


def test_concurrent_redemptions_by_same_email_all_succeed(store: Store) -> None:
    _, key = _course_key(store)

    async def _race():
        return await asyncio.gather(*(redeem(store, key.code, "same@example.com") for _ in range(10)))

    results = asyncio.run(_race())
    assert sum(r.newly_activated for r in results) == 1
    assert {r.product_ref for r in results} == {results[0].product_ref}


def test_activation_is_refused_once_the_deadline_passes(store: Store) -> None:
    _, key = _course_key(store, expires_at=1_000)

    assert asyncio.run(store.keys.activate(key.code, "a@example.com", 1_001)) is None
    assert asyncio.run(store.keys.get_by_code(key.code)).state == KEY_ISSUED

    activated = asyncio.run(store.keys.activate(key.code, "a@example.com", 1_000))
    assert activated is not None
    assert activated.state == KEY_ACTIVATED

