from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    is_free: bool = False  # open to every signed-in learner, no key needed
    created_at: int = 0

    @staticmethod
    def new(*, slug: str, title: str, is_free: bool = False, created_at: int = 0) -> Course:
        return Course(
            id=uuid4(), slug=slug, title=title, is_free=is_free, created_at=created_at
        )


@dataclass(frozen=True, slots=True)
class Episode:
    """One ordered unit of course content.

    ``order`` is 1-based and unique within the course.  Whether an episode is
    unlocked is never stored here; it is derived from the learner's progress
    on the predecessor (see app/services/unlock.py).
    """

    id: UUID
    course_id: UUID
    order: int
    title: str
    duration_minutes: int | None = None
    is_free: bool = False  # preview: watchable without course access

    @staticmethod
    def new(
        *,
        course_id: UUID,
        order: int,
        title: str,
        duration_minutes: int | None = None,
        is_free: bool = False,
    ) -> Episode:
        return Episode(
            id=uuid4(),
            course_id=course_id,
            order=order,
            title=title,
            duration_minutes=duration_minutes,
            is_free=is_free,
        )


@dataclass(frozen=True, slots=True)
class EpisodeQuiz:
    """Gating quiz attached to an episode (at most one per episode)."""

    episode_id: UUID
    passing_score: int = 70  # percent
    required: bool = True
