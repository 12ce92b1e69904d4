"""Decides whether an episode may be marked complete.

Pure functions over already-loaded state; callers do the I/O.  Two
requirements:

  1. watch time: at least 70% of the episode's duration, never less than
     60 seconds (60 seconds when the duration is unknown);
  2. quiz: episodes after the first whose quiz is required must have a
     passing attempt.  The first episode is never quiz-gated.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from app.models.course import Episode, EpisodeQuiz
from app.models.progress import EpisodeProgress, QuizAttempt

MIN_WATCH_SECONDS = 60


def required_watch_seconds(duration_minutes: int | None) -> int:
    if not duration_minutes or duration_minutes <= 0:
        return MIN_WATCH_SECONDS
    # floor(d * 60 * 0.7) in integers
    return max(MIN_WATCH_SECONDS, duration_minutes * 60 * 7 // 10)


@dataclass(frozen=True, slots=True)
class QuizState:
    required: bool = False
    passed: bool = False

    @staticmethod
    def from_attempts(
        quiz: EpisodeQuiz | None, attempts: Iterable[QuizAttempt]
    ) -> QuizState:
        if quiz is None:
            return QuizState()
        return QuizState(required=quiz.required, passed=any(a.passed for a in attempts))


@dataclass(frozen=True, slots=True)
class CompletionCheck:
    watched_seconds: int
    required_seconds: int
    quiz_required: bool
    quiz_passed: bool
    quiz_gated: bool

    @property
    def watch_ok(self) -> bool:
        return self.watched_seconds >= self.required_seconds

    @property
    def quiz_ok(self) -> bool:
        return not self.quiz_gated or not self.quiz_required or self.quiz_passed

    @property
    def eligible(self) -> bool:
        return self.watch_ok and self.quiz_ok

    @property
    def reason(self) -> str:
        if not self.watch_ok:
            return f"watch at least {self.required_seconds} seconds"
        if not self.quiz_ok:
            return "pass the episode quiz"
        return ""


def evaluate(
    episode: Episode, progress: EpisodeProgress | None, quiz: QuizState
) -> CompletionCheck:
    return CompletionCheck(
        watched_seconds=progress.watched_seconds if progress is not None else 0,
        required_seconds=required_watch_seconds(episode.duration_minutes),
        quiz_required=quiz.required,
        quiz_passed=quiz.passed,
        quiz_gated=episode.order > 1,
    )


def can_complete(
    episode: Episode, progress: EpisodeProgress | None, quiz: QuizState
) -> bool:
    return evaluate(episode, progress, quiz).eligible
