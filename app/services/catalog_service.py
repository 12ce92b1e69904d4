"""Courses, ordered episodes and gating quizzes.

Episode lists are read-through cached per course (see app/services/cache.py)
and invalidated whenever an episode is added, once immediately and once
more after the request transaction commits.  The cache only serves listing
views; gating decisions read the store.
"""

from __future__ import annotations

import datetime
import json
import logging
from uuid import UUID

from app.core.config import SETTINGS
from app.exceptions import InvalidPassingScore, NotFound
from app.models.course import Course, Episode, EpisodeQuiz
from app.repos.store import Store
from app.services.cache import cache_service

logger = logging.getLogger(__name__)


def _episodes_cache_key(course_id: UUID) -> str:
    return f"episodes:{course_id}"


async def _invalidate_episodes(store: Store, course_id: UUID) -> None:
    key = _episodes_cache_key(course_id)
    await cache_service.delete(key)
    # A reader outside this transaction can refill the entry before commit
    if store.stale_cache_keys is not None:
        store.stale_cache_keys.append(key)


async def create_course(
    store: Store, *, slug: str, title: str, is_free: bool = False
) -> Course:
    course = Course.new(
        slug=slug.strip().lower(),
        title=title,
        is_free=is_free,
        created_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
    )
    await store.courses.add_course(course)
    logger.info("Course created slug=%s course_id=%s", course.slug, course.id)
    return course


async def get_course(store: Store, course_id: UUID) -> Course:
    course = await store.courses.get_course(course_id)
    if course is None:
        raise NotFound("course", course_id)
    return course


async def list_courses(store: Store) -> list[Course]:
    return await store.courses.list_courses()


async def add_episode(
    store: Store,
    *,
    course_id: UUID,
    order: int,
    title: str,
    duration_minutes: int | None = None,
    is_free: bool = False,
) -> Episode:
    await get_course(store, course_id)
    episode = Episode.new(
        course_id=course_id,
        order=order,
        title=title,
        duration_minutes=duration_minutes,
        is_free=is_free,
    )
    await store.courses.add_episode(episode)
    await _invalidate_episodes(store, course_id)
    logger.info(
        "Episode added course_id=%s order=%d",
        course_id,
        order,
        extra={"course_id": str(course_id), "episode_id": str(episode.id)},
    )
    return episode


async def get_episode(store: Store, course_id: UUID, episode_id: UUID) -> Episode:
    episode = await store.courses.get_episode(episode_id)
    if episode is None or episode.course_id != course_id:
        raise NotFound("episode", episode_id)
    return episode


async def list_episodes(store: Store, course_id: UUID) -> list[Episode]:
    """Episodes of a course sorted by order, served from cache when warm."""
    cache_key = _episodes_cache_key(course_id)
    cached = await cache_service.get(cache_key)
    if cached is not None:
        return [
            Episode(
                id=UUID(e["id"]),
                course_id=UUID(e["course_id"]),
                order=e["order"],
                title=e["title"],
                duration_minutes=e["duration_minutes"],
                is_free=e["is_free"],
            )
            for e in json.loads(cached)
        ]

    episodes = await store.courses.list_episodes(course_id)
    await cache_service.set(
        cache_key,
        json.dumps(
            [
                {
                    "id": str(e.id),
                    "course_id": str(e.course_id),
                    "order": e.order,
                    "title": e.title,
                    "duration_minutes": e.duration_minutes,
                    "is_free": e.is_free,
                }
                for e in episodes
            ]
        ),
        SETTINGS.catalog_cache_ttl,
    )
    return episodes


async def set_episode_quiz(
    store: Store, *, episode_id: UUID, passing_score: int = 70, required: bool = True
) -> EpisodeQuiz:
    if not 0 <= passing_score <= 100:
        raise InvalidPassingScore(passing_score)
    if await store.courses.get_episode(episode_id) is None:
        raise NotFound("episode", episode_id)
    quiz = await store.courses.set_quiz(
        EpisodeQuiz(episode_id=episode_id, passing_score=passing_score, required=required)
    )
    logger.info(
        "Episode quiz set episode_id=%s passing_score=%d required=%s",
        episode_id,
        passing_score,
        required,
    )
    return quiz
