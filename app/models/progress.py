from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class EpisodeProgress:
    """Per-learner, per-episode watch state.

    watched_seconds never decreases and is_completed never goes back to
    False; both are enforced by the repos at write time.
    """

    user_id: UUID
    episode_id: UUID
    course_id: UUID
    watched_seconds: int = 0
    is_completed: bool = False
    completed_at: int | None = None
    last_watched_at: int | None = None

    @staticmethod
    def empty(*, user_id: UUID, episode_id: UUID, course_id: UUID) -> EpisodeProgress:
        return EpisodeProgress(user_id=user_id, episode_id=episode_id, course_id=course_id)


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """One submission of an episode's gating quiz.  Kept for analytics."""

    id: UUID
    user_id: UUID
    episode_id: UUID
    score: int
    passed: bool
    attempted_at: int

    @staticmethod
    def new(
        *, user_id: UUID, episode_id: UUID, score: int, passed: bool, attempted_at: int
    ) -> QuizAttempt:
        return QuizAttempt(
            id=uuid4(),
            user_id=user_id,
            episode_id=episode_id,
            score=score,
            passed=passed,
            attempted_at=attempted_at,
        )
