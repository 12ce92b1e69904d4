from __future__ import annotations

from uuid import uuid4

from app.models.course import Episode
from app.models.progress import EpisodeProgress
from app.services.unlock import is_unlocked, unlocked_episode_ids

_COURSE = uuid4()
_USER = uuid4()


def _episodes(*orders: int) -> list[Episode]:
    return [Episode.new(course_id=_COURSE, order=o, title=f"ep {o}") for o in orders]


def _completed(*episodes: Episode) -> dict:
    return {
        e.id: EpisodeProgress(
            user_id=_USER, episode_id=e.id, course_id=_COURSE, is_completed=True
        )
        for e in episodes
    }


def test_only_first_episode_unlocked_with_no_progress() -> None:
    eps = _episodes(1, 2, 3, 4, 5)
    assert unlocked_episode_ids(eps, {}) == {eps[0].id}


def test_unlock_chain_advances_one_at_a_time() -> None:
    eps = _episodes(1, 2, 3, 4, 5)
    progress = _completed(eps[0], eps[1])
    assert unlocked_episode_ids(eps, progress) == {eps[0].id, eps[1].id, eps[2].id}


def test_watched_but_incomplete_predecessor_keeps_lock() -> None:
    eps = _episodes(1, 2)
    progress = {
        eps[0].id: EpisodeProgress(
            user_id=_USER, episode_id=eps[0].id, course_id=_COURSE, watched_seconds=9999
        )
    }
    assert not is_unlocked(eps[1], eps, progress)


def test_gap_in_ordering_locks_the_rest() -> None:
    eps = _episodes(1, 2, 4)
    progress = _completed(*eps)
    assert is_unlocked(eps[1], eps, progress)
    assert not is_unlocked(eps[2], eps, progress)


def test_completion_out_of_order_does_not_skip() -> None:
    eps = _episodes(1, 2, 3)
    # Episode 2 completed (e.g. data imported) but episode 1 is not
    progress = _completed(eps[1])
    assert is_unlocked(eps[2], eps, progress)
    assert not is_unlocked(eps[1], eps, progress)


def test_input_order_does_not_matter() -> None:
    eps = _episodes(3, 1, 2)
    progress = _completed(eps[1])
    assert unlocked_episode_ids(eps, progress) == {eps[1].id, eps[2].id}
