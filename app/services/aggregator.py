"""Enrollment progress roll-up.

Recomputed from scratch on every episode state change, so running it twice
or concurrently converges on the same numbers.  completed_at is written the
first time every episode is complete and is never cleared afterwards, even
if new episodes are added to the course later.
"""

from __future__ import annotations

import datetime
import logging
from uuid import UUID

from app.models.enrollment import Enrollment
from app.repos.store import Store

logger = logging.getLogger(__name__)


def progress_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    return 100 * completed // total


async def recompute_enrollment(
    store: Store, user_id: UUID, course_id: UUID, *, now: int | None = None
) -> Enrollment | None:
    """Refresh completed_episodes / progress_percentage for one enrollment.

    Returns None when the learner has no enrollment (free-preview viewers).
    """
    enrollment = await store.enrollments.get(user_id, course_id)
    if enrollment is None:
        return None
    if now is None:
        now = int(datetime.datetime.now(datetime.UTC).timestamp())

    episode_ids = {e.id for e in await store.courses.list_episodes(course_id)}
    rows = await store.progress.list_for_course(user_id, course_id)
    completed = sum(1 for p in rows if p.is_completed and p.episode_id in episode_ids)

    updated = await store.enrollments.update_aggregate(
        user_id,
        course_id,
        completed_episodes=completed,
        progress_percentage=progress_percentage(completed, len(episode_ids)),
        now=now,
    )
    if updated is not None and updated.is_completed and not enrollment.is_completed:
        logger.info(
            "Course completed user_id=%s course_id=%s",
            user_id,
            course_id,
            extra={"user_id": str(user_id), "course_id": str(course_id)},
        )
    return updated
