"""Linear unlock chain.

Episode 1 is always unlocked.  Episode n > 1 is unlocked only when the
episode with order n - 1 exists and the learner has completed it.  A gap in
the ordering locks everything after it.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from uuid import UUID

from app.models.course import Episode
from app.models.progress import EpisodeProgress


def is_unlocked(
    episode: Episode,
    episodes: Sequence[Episode],
    progress_by_episode: Mapping[UUID, EpisodeProgress],
) -> bool:
    if episode.order <= 1:
        return True
    predecessor = next((e for e in episodes if e.order == episode.order - 1), None)
    if predecessor is None:
        return False
    progress = progress_by_episode.get(predecessor.id)
    return progress is not None and progress.is_completed


def unlocked_episode_ids(
    episodes: Sequence[Episode],
    progress_by_episode: Mapping[UUID, EpisodeProgress],
) -> set[UUID]:
    return {e.id for e in episodes if is_unlocked(e, episodes, progress_by_episode)}
