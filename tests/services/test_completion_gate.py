from __future__ import annotations

from uuid import uuid4

import pytest

from app.models.course import Episode, EpisodeQuiz
from app.models.progress import EpisodeProgress, QuizAttempt
from app.services.completion_gate import (
    QuizState,
    can_complete,
    evaluate,
    required_watch_seconds,
)

_COURSE = uuid4()
_USER = uuid4()


def _episode(order: int = 1, duration: int | None = 10) -> Episode:
    return Episode.new(course_id=_COURSE, order=order, title="ep", duration_minutes=duration)


def _progress(ep: Episode, watched: int) -> EpisodeProgress:
    return EpisodeProgress(
        user_id=_USER, episode_id=ep.id, course_id=_COURSE, watched_seconds=watched
    )


# ---- required watch time ----


@pytest.mark.parametrize(
    ("duration", "expected"),
    [
        (None, 60),
        (0, 60),
        (-5, 60),
        (1, 60),  # 42s floors up to the minimum
        (2, 84),
        (10, 420),
        (45, 1890),
    ],
)
def test_required_watch_seconds(duration: int | None, expected: int) -> None:
    assert required_watch_seconds(duration) == expected


def test_first_episode_threshold_is_exact() -> None:
    ep = _episode(order=1, duration=10)
    assert not can_complete(ep, _progress(ep, 419), QuizState())
    assert can_complete(ep, _progress(ep, 420), QuizState())


def test_missing_progress_counts_as_zero_watch() -> None:
    ep = _episode()
    check = evaluate(ep, None, QuizState())
    assert check.watched_seconds == 0
    assert not check.eligible
    assert check.reason == "watch at least 420 seconds"


# ---- quiz gating ----


def test_first_episode_ignores_required_quiz() -> None:
    ep = _episode(order=1)
    assert can_complete(ep, _progress(ep, 600), QuizState(required=True, passed=False))


def test_later_episode_needs_passed_quiz() -> None:
    ep = _episode(order=2)
    progress = _progress(ep, 600)

    check = evaluate(ep, progress, QuizState(required=True, passed=False))
    assert check.watch_ok
    assert not check.eligible
    assert check.reason == "pass the episode quiz"

    assert can_complete(ep, progress, QuizState(required=True, passed=True))


def test_optional_quiz_does_not_gate() -> None:
    ep = _episode(order=3)
    assert can_complete(ep, _progress(ep, 600), QuizState(required=False, passed=False))


def test_quiz_does_not_replace_watch_time() -> None:
    ep = _episode(order=2)
    check = evaluate(ep, _progress(ep, 100), QuizState(required=True, passed=True))
    assert not check.eligible
    assert check.reason.startswith("watch at least")


# ---- QuizState ----


def test_quiz_state_without_quiz_is_not_required() -> None:
    assert QuizState.from_attempts(None, []) == QuizState(required=False, passed=False)


def test_quiz_state_passed_if_any_attempt_passed() -> None:
    ep = _episode(order=2)
    quiz = EpisodeQuiz(episode_id=ep.id, passing_score=70)
    attempts = [
        QuizAttempt.new(user_id=_USER, episode_id=ep.id, score=40, passed=False, attempted_at=1),
        QuizAttempt.new(user_id=_USER, episode_id=ep.id, score=90, passed=True, attempted_at=2),
        QuizAttempt.new(user_id=_USER, episode_id=ep.id, score=10, passed=False, attempted_at=3),
    ]
    state = QuizState.from_attempts(quiz, attempts)
    assert state.required
    assert state.passed
