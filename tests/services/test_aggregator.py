from __future__ import annotations

import asyncio

import pytest

from app.repos.store import Store
from app.services import catalog_service
from app.services.access_service import ensure_enrollment
from app.services.aggregator import progress_percentage, recompute_enrollment
from tests.conftest import seed_course, seed_user


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [(0, 0, 0), (0, 4, 0), (1, 3, 33), (2, 3, 66), (3, 4, 75), (4, 4, 100)],
)
def test_progress_percentage_floors(completed: int, total: int, expected: int) -> None:
    assert progress_percentage(completed, total) == expected


def _complete(store: Store, user, ep, now: int) -> None:
    asyncio.run(store.progress.mark_completed(user.id, ep.id, ep.course_id, now))


def test_recompute_without_enrollment_returns_none(store: Store) -> None:
    user = seed_user(store)
    course, eps = seed_course(store)
    _complete(store, user, eps[0], 1)
    assert asyncio.run(recompute_enrollment(store, user.id, course.id)) is None


def test_recompute_counts_completed_episodes(store: Store) -> None:
    user = seed_user(store)
    course, eps = seed_course(store, (10, 10, 10, 10))
    asyncio.run(ensure_enrollment(store, user.id, course.id, now=1))
    for ep in eps[:3]:
        _complete(store, user, ep, 2)

    enrollment = asyncio.run(recompute_enrollment(store, user.id, course.id, now=3))
    assert enrollment.completed_episodes == 3
    assert enrollment.progress_percentage == 75
    assert enrollment.completed_at is None
    assert enrollment.last_accessed_at == 3


def test_completed_at_set_once_and_kept_when_course_grows(store: Store) -> None:
    user = seed_user(store)
    course, eps = seed_course(store, (10, 10))
    asyncio.run(ensure_enrollment(store, user.id, course.id, now=1))
    for ep in eps:
        _complete(store, user, ep, 2)

    done = asyncio.run(recompute_enrollment(store, user.id, course.id, now=10))
    assert done.progress_percentage == 100
    assert done.completed_at == 10

    again = asyncio.run(recompute_enrollment(store, user.id, course.id, now=20))
    assert again.completed_at == 10

    asyncio.run(
        catalog_service.add_episode(store, course_id=course.id, order=3, title="Bonus")
    )
    grown = asyncio.run(recompute_enrollment(store, user.id, course.id, now=30))
    assert grown.progress_percentage == 66
    assert grown.completed_at == 10


def test_empty_course_is_zero_percent(store: Store) -> None:
    user = seed_user(store)
    course, _ = seed_course(store, ())
    asyncio.run(ensure_enrollment(store, user.id, course.id, now=1))
    enrollment = asyncio.run(recompute_enrollment(store, user.id, course.id))
    assert enrollment.progress_percentage == 0
    assert enrollment.completed_at is None


def test_concurrent_recomputes_converge(store: Store) -> None:
    user = seed_user(store)
    course, eps = seed_course(store)
    asyncio.run(ensure_enrollment(store, user.id, course.id, now=1))
    for ep in eps:
        _complete(store, user, ep, 2)

    async def _many():
        return await asyncio.gather(
            *(recompute_enrollment(store, user.id, course.id, now=n) for n in range(5, 15))
        )

    results = asyncio.run(_many())
    completed_ats = {r.completed_at for r in results}
    assert len(completed_ats) == 1
    stored = asyncio.run(store.enrollments.get(user.id, course.id))
    assert stored.completed_at in completed_ats
    assert stored.progress_percentage == 100
