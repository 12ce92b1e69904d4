from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from app.exceptions import (
    DuplicateCourseSlug,
    DuplicateEpisodeOrder,
    InvalidPassingScore,
    NotFound,
)
from app.repos.store import Store
from app.services import catalog_service
from app.services.cache import cache_service
from tests.conftest import seed_course


def test_create_course_lowercases_slug(store: Store) -> None:
    course = asyncio.run(
        catalog_service.create_course(store, slug="  Flex-101 ", title="Flex")
    )
    assert course.slug == "flex-101"
    assert asyncio.run(catalog_service.get_course(store, course.id)) == course


def test_duplicate_slug_rejected(store: Store) -> None:
    seed_course(store, slug="flex-101")
    with pytest.raises(DuplicateCourseSlug):
        asyncio.run(catalog_service.create_course(store, slug="FLEX-101", title="Again"))


def test_get_unknown_course(store: Store) -> None:
    with pytest.raises(NotFound):
        asyncio.run(catalog_service.get_course(store, uuid4()))


def test_add_episode_to_unknown_course(store: Store) -> None:
    with pytest.raises(NotFound):
        asyncio.run(
            catalog_service.add_episode(store, course_id=uuid4(), order=1, title="x")
        )


def test_duplicate_episode_order_rejected(store: Store) -> None:
    course, _ = seed_course(store, (10, 10))
    with pytest.raises(DuplicateEpisodeOrder):
        asyncio.run(
            catalog_service.add_episode(store, course_id=course.id, order=2, title="Dup")
        )


def test_list_episodes_sorted_by_order(store: Store) -> None:
    course, _ = seed_course(store, ())
    for order in (3, 1, 2):
        asyncio.run(
            catalog_service.add_episode(
                store, course_id=course.id, order=order, title=f"E{order}"
            )
        )
    episodes = asyncio.run(catalog_service.list_episodes(store, course.id))
    assert [e.order for e in episodes] == [1, 2, 3]


def test_get_episode_checks_course(store: Store) -> None:
    course, eps = seed_course(store)
    other, _ = seed_course(store)
    assert asyncio.run(catalog_service.get_episode(store, course.id, eps[0].id)) == eps[0]
    with pytest.raises(NotFound):
        asyncio.run(catalog_service.get_episode(store, other.id, eps[0].id))


# ---- cache ----


def test_list_episodes_is_served_from_cache(store: Store) -> None:
    course, eps = seed_course(store, (10, None))
    first = asyncio.run(catalog_service.list_episodes(store, course.id))
    assert first == eps
    assert asyncio.run(cache_service.get(f"episodes:{course.id}")) is not None

    # Cached copy decodes to equal values
    assert asyncio.run(catalog_service.list_episodes(store, course.id)) == eps


def test_add_episode_invalidates_cached_list(store: Store) -> None:
    course, _ = seed_course(store, (10,))
    assert len(asyncio.run(catalog_service.list_episodes(store, course.id))) == 1

    asyncio.run(
        catalog_service.add_episode(store, course_id=course.id, order=2, title="More")
    )
    assert asyncio.run(cache_service.get(f"episodes:{course.id}")) is None
    assert len(asyncio.run(catalog_service.list_episodes(store, course.id))) == 2


# ---- quizzes ----


def test_set_episode_quiz_upserts(store: Store) -> None:
    _, eps = seed_course(store)
    asyncio.run(catalog_service.set_episode_quiz(store, episode_id=eps[1].id))
    updated = asyncio.run(
        catalog_service.set_episode_quiz(
            store, episode_id=eps[1].id, passing_score=90, required=False
        )
    )
    assert (updated.passing_score, updated.required) == (90, False)
    assert asyncio.run(store.courses.get_quiz(eps[1].id)) == updated


@pytest.mark.parametrize("score", [-1, 101])
def test_set_episode_quiz_rejects_bad_score(store: Store, score: int) -> None:
    _, eps = seed_course(store)
    with pytest.raises(InvalidPassingScore):
        asyncio.run(
            catalog_service.set_episode_quiz(store, episode_id=eps[0].id, passing_score=score)
        )


def test_set_episode_quiz_unknown_episode(store: Store) -> None:
    with pytest.raises(NotFound):
        asyncio.run(catalog_service.set_episode_quiz(store, episode_id=uuid4()))
