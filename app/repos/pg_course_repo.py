"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CourseRow, EpisodeQuizRow, EpisodeRow
from app.exceptions import DuplicateCourseSlug, DuplicateEpisodeOrder
from app.models.course import Course, Episode, EpisodeQuiz


class PgCourseRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_course(self, course: Course) -> None:
        row = CourseRow(
            id=course.id,
            slug=course.slug,
            title=course.title,
            is_free=course.is_free,
            created_at=course.created_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateCourseSlug(course.slug) from None

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        return _row_to_course(row) if row is not None else None

    async def list_courses(self) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.created_at, CourseRow.slug)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def add_episode(self, episode: Episode) -> None:
        row = EpisodeRow(
            id=episode.id,
            course_id=episode.course_id,
            order=episode.order,
            title=episode.title,
            duration_minutes=episode.duration_minutes,
            is_free=episode.is_free,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            # uq_episodes_course_position
            raise DuplicateEpisodeOrder(episode.order) from None

    async def get_episode(self, episode_id: UUID) -> Episode | None:
        row = await self._session.get(EpisodeRow, episode_id)
        return _row_to_episode(row) if row is not None else None

    async def list_episodes(self, course_id: UUID) -> list[Episode]:
        stmt = (
            select(EpisodeRow)
            .where(EpisodeRow.course_id == course_id)
            .order_by(EpisodeRow.order)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_episode(r) for r in rows]

    async def set_quiz(self, quiz: EpisodeQuiz) -> EpisodeQuiz:
        stmt = (
            insert(EpisodeQuizRow)
            .values(
                episode_id=quiz.episode_id,
                passing_score=quiz.passing_score,
                required=quiz.required,
            )
            .on_conflict_do_update(
                index_elements=[EpisodeQuizRow.episode_id],
                set_={"passing_score": quiz.passing_score, "required": quiz.required},
            )
        )
        await self._session.execute(stmt)
        return quiz

    async def get_quiz(self, episode_id: UUID) -> EpisodeQuiz | None:
        row = await self._session.get(EpisodeQuizRow, episode_id)
        return _row_to_quiz(row) if row is not None else None

    async def list_quizzes(self, course_id: UUID) -> dict[UUID, EpisodeQuiz]:
        stmt = (
            select(EpisodeQuizRow)
            .join(EpisodeRow, EpisodeRow.id == EpisodeQuizRow.episode_id)
            .where(EpisodeRow.course_id == course_id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return {r.episode_id: _row_to_quiz(r) for r in rows}


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        slug=row.slug,
        title=row.title,
        is_free=row.is_free,
        created_at=row.created_at,
    )


def _row_to_episode(row: EpisodeRow) -> Episode:
    return Episode(
        id=row.id,
        course_id=row.course_id,
        order=row.order,
        title=row.title,
        duration_minutes=row.duration_minutes,
        is_free=row.is_free,
    )


def _row_to_quiz(row: EpisodeQuizRow) -> EpisodeQuiz:
    return EpisodeQuiz(
        episode_id=row.episode_id,
        passing_score=row.passing_score,
        required=row.required,
    )
