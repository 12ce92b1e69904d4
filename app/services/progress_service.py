"""Learner-facing progress operations.

Every write goes through the same guard: the episode must belong to the
course, the learner must have course access (free episodes excepted) and
the episode must be unlocked.  Watch time and completion are merged in the
store, then the enrollment roll-up is recomputed.

Completion hints from the player are advisory.  The completion gate is
always re-evaluated against the stored state.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from uuid import UUID

from app.core.metrics import COMPLETION_REJECTIONS, EPISODE_COMPLETIONS
from app.exceptions import AccessDenied, CompletionNotEligible, InvalidProgress, NotFound
from app.models.course import Episode
from app.models.enrollment import Enrollment
from app.models.progress import EpisodeProgress, QuizAttempt
from app.repos.store import Store
from app.services import catalog_service
from app.services.access_service import (
    GRANT_FREE_COURSE,
    GRANT_KEY,
    AccessDecision,
    ensure_enrollment,
    resolve_access,
)
from app.services.aggregator import recompute_enrollment
from app.services.completion_gate import (
    CompletionCheck,
    QuizState,
    evaluate,
    required_watch_seconds,
)
from app.services.unlock import is_unlocked

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EpisodeView:
    episode: Episode
    is_unlocked: bool
    is_completed: bool
    watched_seconds: int
    required_watch_seconds: int
    quiz_required: bool
    quiz_passed: bool
    can_complete: bool


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def _log_extra(user_id: UUID, course_id: UUID, episode_id: UUID) -> dict[str, str]:
    return {
        "user_id": str(user_id),
        "course_id": str(course_id),
        "episode_id": str(episode_id),
    }


async def _guard(
    store: Store, user_id: UUID, course_id: UUID, episode_id: UUID
) -> tuple[Episode, AccessDecision]:
    """Load the episode and reject the call unless the learner may use it."""
    if await store.users.get_by_id(user_id) is None:
        raise NotFound("user", user_id)
    decision = await resolve_access(store, user_id, course_id)
    episode = await catalog_service.get_episode(store, course_id, episode_id)

    if not decision.has_access and not episode.is_free:
        logger.warning(
            "Progress rejected, no course access",
            extra=_log_extra(user_id, course_id, episode_id),
        )
        raise AccessDenied("You do not have access to this course")

    episodes = await store.courses.list_episodes(course_id)
    progress = {p.episode_id: p for p in await store.progress.list_for_course(user_id, course_id)}
    if not is_unlocked(episode, episodes, progress):
        logger.warning(
            "Progress rejected, episode locked order=%d",
            episode.order,
            extra=_log_extra(user_id, course_id, episode_id),
        )
        raise AccessDenied("Complete the previous episode first")
    return episode, decision


async def _enroll_if_granted(
    store: Store, user_id: UUID, course_id: UUID, decision: AccessDecision, now: int
) -> None:
    # Key holders who redeemed before signing up, and free-course learners,
    # get their enrollment on first activity
    if decision.grant in (GRANT_KEY, GRANT_FREE_COURSE):
        await ensure_enrollment(
            store,
            user_id,
            course_id,
            registration_key_id=decision.registration_key_id,
            now=now,
        )


async def _quiz_state(store: Store, user_id: UUID, episode_id: UUID) -> QuizState:
    quiz = await store.courses.get_quiz(episode_id)
    if quiz is None:
        return QuizState()
    return QuizState.from_attempts(quiz, await store.progress.list_attempts(user_id, episode_id))


async def _check(
    store: Store, user_id: UUID, episode: Episode, progress: EpisodeProgress | None
) -> CompletionCheck:
    return evaluate(episode, progress, await _quiz_state(store, user_id, episode.id))


async def report_progress(
    store: Store,
    *,
    user_id: UUID,
    course_id: UUID,
    episode_id: UUID,
    watched_seconds: int,
    complete_hint: bool = False,
) -> EpisodeProgress:
    if watched_seconds < 0:
        raise InvalidProgress("watched_seconds must be >= 0")
    episode, decision = await _guard(store, user_id, course_id, episode_id)
    now = _now()
    await _enroll_if_granted(store, user_id, course_id, decision, now)

    progress = await store.progress.record_watch(
        user_id, episode_id, course_id, watched_seconds, now
    )

    if complete_hint and not progress.is_completed:
        check = await _check(store, user_id, episode, progress)
        if check.eligible:
            progress, transitioned = await store.progress.mark_completed(
                user_id, episode_id, course_id, now
            )
            if transitioned:
                EPISODE_COMPLETIONS.labels(source="hint").inc()
                logger.info(
                    "Episode completed via player hint order=%d",
                    episode.order,
                    extra=_log_extra(user_id, course_id, episode_id),
                )
        else:
            COMPLETION_REJECTIONS.labels(source="hint").inc()
            logger.info(
                "Completion hint ignored: %s",
                check.reason,
                extra=_log_extra(user_id, course_id, episode_id),
            )

    await recompute_enrollment(store, user_id, course_id, now=now)
    return progress


async def mark_episode_complete(
    store: Store, *, user_id: UUID, course_id: UUID, episode_id: UUID
) -> EpisodeProgress:
    episode, decision = await _guard(store, user_id, course_id, episode_id)
    now = _now()

    current = await store.progress.get(user_id, episode_id)
    if current is not None and current.is_completed:
        return current

    check = await _check(store, user_id, episode, current)
    if not check.eligible:
        COMPLETION_REJECTIONS.labels(source="mark").inc()
        logger.warning(
            "Completion refused: %s",
            check.reason,
            extra=_log_extra(user_id, course_id, episode_id),
        )
        raise CompletionNotEligible(check.reason)

    await _enroll_if_granted(store, user_id, course_id, decision, now)
    progress, transitioned = await store.progress.mark_completed(
        user_id, episode_id, course_id, now
    )
    if transitioned:
        EPISODE_COMPLETIONS.labels(source="mark").inc()
        logger.info(
            "Episode completed order=%d",
            episode.order,
            extra=_log_extra(user_id, course_id, episode_id),
        )
    await recompute_enrollment(store, user_id, course_id, now=now)
    return progress


async def record_quiz_attempt(
    store: Store, *, user_id: UUID, course_id: UUID, episode_id: UUID, score: int
) -> QuizAttempt:
    if not 0 <= score <= 100:
        raise InvalidProgress("score must be between 0 and 100")
    await _guard(store, user_id, course_id, episode_id)
    quiz = await store.courses.get_quiz(episode_id)
    if quiz is None:
        raise NotFound("quiz", episode_id)

    attempt = QuizAttempt.new(
        user_id=user_id,
        episode_id=episode_id,
        score=score,
        passed=score >= quiz.passing_score,
        attempted_at=_now(),
    )
    await store.progress.add_attempt(attempt)
    logger.info(
        "Quiz attempt recorded score=%d passed=%s",
        score,
        attempt.passed,
        extra=_log_extra(user_id, course_id, episode_id),
    )
    return attempt


async def list_episodes_with_unlock_state(
    store: Store, *, user_id: UUID, course_id: UUID
) -> list[EpisodeView]:
    decision = await resolve_access(store, user_id, course_id)
    episodes = await catalog_service.list_episodes(store, course_id)
    progress = {p.episode_id: p for p in await store.progress.list_for_course(user_id, course_id)}
    quizzes = await store.courses.list_quizzes(course_id)

    views = []
    for episode in episodes:
        quiz = quizzes.get(episode.id)
        quiz_state = (
            QuizState.from_attempts(quiz, await store.progress.list_attempts(user_id, episode.id))
            if quiz is not None
            else QuizState()
        )
        row = progress.get(episode.id)
        check = evaluate(episode, row, quiz_state)
        views.append(
            EpisodeView(
                episode=episode,
                is_unlocked=is_unlocked(episode, episodes, progress)
                and (decision.has_access or episode.is_free),
                is_completed=row is not None and row.is_completed,
                watched_seconds=row.watched_seconds if row is not None else 0,
                required_watch_seconds=required_watch_seconds(episode.duration_minutes),
                quiz_required=quiz_state.required,
                quiz_passed=quiz_state.passed,
                can_complete=check.eligible,
            )
        )
    return views


async def get_enrollment(store: Store, *, user_id: UUID, course_id: UUID) -> Enrollment:
    enrollment = await store.enrollments.get(user_id, course_id)
    if enrollment is None:
        raise NotFound("enrollment")
    return enrollment


async def list_enrollments(store: Store, *, user_id: UUID) -> list[Enrollment]:
    """The learner's enrollments, oldest first."""
    return await store.enrollments.list_for_user(user_id)
