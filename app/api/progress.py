"""Learner progress endpoints.

The player posts watch time (optionally with a completion hint), the
"mark complete" button posts to /complete, and the quiz widget posts
attempts.  Each write returns the stored state after merging, never the
submitted values.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import get_store, require_user
from app.api.errors import http_error
from app.exceptions import EngineError
from app.models.principal import Principal
from app.models.enrollment import Enrollment
from app.models.progress import EpisodeProgress
from app.repos.store import Store
from app.services import progress_service

router = APIRouter(prefix="/v1/courses/{course_id}", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["progress"])


class ProgressIn(BaseModel):
    watched_seconds: int
    complete: bool = False


class ProgressOut(BaseModel):
    episode_id: str
    course_id: str
    watched_seconds: int
    is_completed: bool
    completed_at: int | None
    last_watched_at: int | None


class QuizAttemptIn(BaseModel):
    score: int


class QuizAttemptOut(BaseModel):
    id: str
    episode_id: str
    score: int
    passed: bool
    attempted_at: int


class EpisodeViewOut(BaseModel):
    id: str
    order: int
    title: str
    duration_minutes: int | None
    is_free: bool
    is_unlocked: bool
    is_completed: bool
    watched_seconds: int
    required_watch_seconds: int
    quiz_required: bool
    quiz_passed: bool
    can_complete: bool


class EnrollmentOut(BaseModel):
    user_id: str
    course_id: str
    enrolled_at: int
    progress_percentage: int
    completed_episodes: int
    completed_at: int | None
    last_accessed_at: int | None


def _progress_out(p: EpisodeProgress) -> ProgressOut:
    return ProgressOut(
        episode_id=str(p.episode_id),
        course_id=str(p.course_id),
        watched_seconds=p.watched_seconds,
        is_completed=p.is_completed,
        completed_at=p.completed_at,
        last_watched_at=p.last_watched_at,
    )



def _enrollment_out(e: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        user_id=str(e.user_id),
        course_id=str(e.course_id),
        enrolled_at=e.enrolled_at,
        progress_percentage=e.progress_percentage,
        completed_episodes=e.completed_episodes,
        completed_at=e.completed_at,
        last_accessed_at=e.last_accessed_at,
    )

@router.get("/episodes", response_model=list[EpisodeViewOut])
async def list_episodes(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> list[EpisodeViewOut]:
    try:
        views = await progress_service.list_episodes_with_unlock_state(
            store, user_id=principal.user_uuid, course_id=course_id
        )
    except EngineError as e:
        raise http_error(e) from None
    return [
        EpisodeViewOut(
            id=str(v.episode.id),
            order=v.episode.order,
            title=v.episode.title,
            duration_minutes=v.episode.duration_minutes,
            is_free=v.episode.is_free,
            is_unlocked=v.is_unlocked,
            is_completed=v.is_completed,
            watched_seconds=v.watched_seconds,
            required_watch_seconds=v.required_watch_seconds,
            quiz_required=v.quiz_required,
            quiz_passed=v.quiz_passed,
            can_complete=v.can_complete,
        )
        for v in views
    ]


@router.post("/episodes/{episode_id}/progress", response_model=ProgressOut)
async def report_progress(
    course_id: UUID,
    episode_id: UUID,
    body: ProgressIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> ProgressOut:
    try:
        progress = await progress_service.report_progress(
            store,
            user_id=principal.user_uuid,
            course_id=course_id,
            episode_id=episode_id,
            watched_seconds=body.watched_seconds,
            complete_hint=body.complete,
        )
    except EngineError as e:
        raise http_error(e) from None
    return _progress_out(progress)


@router.post("/episodes/{episode_id}/complete", response_model=ProgressOut)
async def mark_complete(
    course_id: UUID,
    episode_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> ProgressOut:
    try:
        progress = await progress_service.mark_episode_complete(
            store,
            user_id=principal.user_uuid,
            course_id=course_id,
            episode_id=episode_id,
        )
    except EngineError as e:
        raise http_error(e) from None
    return _progress_out(progress)


@router.post(
    "/episodes/{episode_id}/quiz-attempts",
    response_model=QuizAttemptOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_quiz_attempt(
    course_id: UUID,
    episode_id: UUID,
    body: QuizAttemptIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> QuizAttemptOut:
    try:
        attempt = await progress_service.record_quiz_attempt(
            store,
            user_id=principal.user_uuid,
            course_id=course_id,
            episode_id=episode_id,
            score=body.score,
        )
    except EngineError as e:
        raise http_error(e) from None
    return QuizAttemptOut(
        id=str(attempt.id),
        episode_id=str(attempt.episode_id),
        score=attempt.score,
        passed=attempt.passed,
        attempted_at=attempt.attempted_at,
    )


@router.get("/enrollment", response_model=EnrollmentOut)
async def get_enrollment(
    course_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> EnrollmentOut:
    try:
        e = await progress_service.get_enrollment(
            store, user_id=principal.user_uuid, course_id=course_id
        )
    except EngineError as exc:
        raise http_error(exc) from None
    return _enrollment_out(e)


@enrollments_router.get("", response_model=list[EnrollmentOut])
async def list_my_enrollments(
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> list[EnrollmentOut]:
    enrollments = await progress_service.list_enrollments(
        store, user_id=principal.user_uuid
    )
    return [_enrollment_out(e) for e in enrollments]
