"""Course catalog endpoints.

Admins create courses, episodes and quizzes.  Any signed-in user can list
courses; the per-learner episode view lives in app/api/progress.py.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.dependencies import get_store, require_admin, require_user
from app.api.errors import http_error, validation_error
from app.exceptions import EngineError
from app.models.course import Course, Episode
from app.models.principal import Principal
from app.repos.store import Store
from app.services import catalog_service

router = APIRouter(tags=["courses"])


class CourseIn(BaseModel):
    slug: str
    title: str
    is_free: bool = False


class CourseOut(BaseModel):
    id: str
    slug: str
    title: str
    is_free: bool
    created_at: int


class EpisodeIn(BaseModel):
    order: int
    title: str
    duration_minutes: int | None = None
    is_free: bool = False


class EpisodeOut(BaseModel):
    id: str
    course_id: str
    order: int
    title: str
    duration_minutes: int | None
    is_free: bool


class QuizIn(BaseModel):
    passing_score: int = 70
    required: bool = True


class QuizOut(BaseModel):
    episode_id: str
    passing_score: int
    required: bool


def _course_out(c: Course) -> CourseOut:
    return CourseOut(
        id=str(c.id), slug=c.slug, title=c.title, is_free=c.is_free, created_at=c.created_at
    )


def _episode_out(e: Episode) -> EpisodeOut:
    return EpisodeOut(
        id=str(e.id),
        course_id=str(e.course_id),
        order=e.order,
        title=e.title,
        duration_minutes=e.duration_minutes,
        is_free=e.is_free,
    )


@router.get("/v1/courses", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> list[CourseOut]:
    return [_course_out(c) for c in await catalog_service.list_courses(store)]


@router.post("/v1/courses", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseIn,
    _admin: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> CourseOut:
    if not body.slug.strip() or not body.title.strip():
        raise validation_error("slug and title must be non-empty")
    try:
        course = await catalog_service.create_course(
            store, slug=body.slug, title=body.title, is_free=body.is_free
        )
    except EngineError as e:
        raise http_error(e) from None
    return _course_out(course)


@router.post(
    "/v1/courses/{course_id}/episodes",
    response_model=EpisodeOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_episode(
    course_id: UUID,
    body: EpisodeIn,
    _admin: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> EpisodeOut:
    if body.order < 1:
        raise validation_error("order must be >= 1")
    if body.duration_minutes is not None and body.duration_minutes < 0:
        raise validation_error("duration_minutes must be >= 0")
    try:
        episode = await catalog_service.add_episode(
            store,
            course_id=course_id,
            order=body.order,
            title=body.title,
            duration_minutes=body.duration_minutes,
            is_free=body.is_free,
        )
    except EngineError as e:
        raise http_error(e) from None
    return _episode_out(episode)


@router.put("/v1/episodes/{episode_id}/quiz", response_model=QuizOut)
async def set_episode_quiz(
    episode_id: UUID,
    body: QuizIn,
    _admin: Annotated[Principal, Depends(require_admin)],
    store: Annotated[Store, Depends(get_store)],
) -> QuizOut:
    try:
        quiz = await catalog_service.set_episode_quiz(
            store,
            episode_id=episode_id,
            passing_score=body.passing_score,
            required=body.required,
        )
    except EngineError as e:
        raise http_error(e) from None
    return QuizOut(
        episode_id=str(quiz.episode_id),
        passing_score=quiz.passing_score,
        required=quiz.required,
    )
