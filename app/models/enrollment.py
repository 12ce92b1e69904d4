from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Enrollment:
    """Learner <-> course relationship with aggregate progress.

    progress_percentage and completed_episodes are a projection of the
    learner's EpisodeProgress rows; only app/services/aggregator.py writes
    them.  completed_at is set once and never cleared.
    """

    user_id: UUID
    course_id: UUID
    enrolled_at: int
    progress_percentage: int = 0
    completed_episodes: int = 0
    completed_at: int | None = None
    last_accessed_at: int | None = None
    registration_key_id: UUID | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
