"""PostgreSQL implementation of ProgressRepo.

Watch time is merged with GREATEST() inside an upsert and completion is a
conditional UPDATE, so concurrent reports can neither lower watched_seconds
nor un-complete an episode.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import EpisodeProgressRow, QuizAttemptRow
from app.models.progress import EpisodeProgress, QuizAttempt


class PgProgressRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, episode_id: UUID) -> EpisodeProgress | None:
        stmt = select(EpisodeProgressRow).where(
            EpisodeProgressRow.user_id == user_id,
            EpisodeProgressRow.episode_id == episode_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_progress(row) if row is not None else None

    async def list_for_course(self, user_id: UUID, course_id: UUID) -> list[EpisodeProgress]:
        stmt = select(EpisodeProgressRow).where(
            EpisodeProgressRow.user_id == user_id,
            EpisodeProgressRow.course_id == course_id,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(r) for r in rows]

    async def record_watch(
        self,
        user_id: UUID,
        episode_id: UUID,
        course_id: UUID,
        watched_seconds: int,
        now: int,
    ) -> EpisodeProgress:
        stmt = insert(EpisodeProgressRow).values(
            user_id=user_id,
            episode_id=episode_id,
            course_id=course_id,
            watched_seconds=watched_seconds,
            is_completed=False,
            last_watched_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[EpisodeProgressRow.user_id, EpisodeProgressRow.episode_id],
            set_={
                "watched_seconds": func.greatest(
                    EpisodeProgressRow.watched_seconds, stmt.excluded.watched_seconds
                ),
                "last_watched_at": stmt.excluded.last_watched_at,
            },
        ).returning(EpisodeProgressRow)
        row = (
            await self._session.execute(
                stmt, execution_options={"populate_existing": True}
            )
        ).scalar_one()
        return _row_to_progress(row)

    async def mark_completed(
        self, user_id: UUID, episode_id: UUID, course_id: UUID, now: int
    ) -> tuple[EpisodeProgress, bool]:
        await self._session.execute(
            insert(EpisodeProgressRow)
            .values(
                user_id=user_id,
                episode_id=episode_id,
                course_id=course_id,
                watched_seconds=0,
                is_completed=False,
            )
            .on_conflict_do_nothing(
                index_elements=[EpisodeProgressRow.user_id, EpisodeProgressRow.episode_id]
            )
        )
        stmt = (
            update(EpisodeProgressRow)
            .where(
                EpisodeProgressRow.user_id == user_id,
                EpisodeProgressRow.episode_id == episode_id,
                EpisodeProgressRow.is_completed.is_(False),
            )
            .values(
                is_completed=True,
                completed_at=func.coalesce(EpisodeProgressRow.completed_at, now),
            )
            .returning(EpisodeProgressRow)
            .execution_options(synchronize_session=False)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is not None:
            return _row_to_progress(row), True
        # Inserted above if absent, so the row is always there
        existing = select(EpisodeProgressRow).where(
            EpisodeProgressRow.user_id == user_id,
            EpisodeProgressRow.episode_id == episode_id,
        )
        row = (await self._session.execute(existing)).scalar_one()
        return _row_to_progress(row), False

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        self._session.add(
            QuizAttemptRow(
                id=attempt.id,
                user_id=attempt.user_id,
                episode_id=attempt.episode_id,
                score=attempt.score,
                passed=attempt.passed,
                attempted_at=attempt.attempted_at,
            )
        )
        await self._session.flush()

    async def list_attempts(self, user_id: UUID, episode_id: UUID) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .where(
                QuizAttemptRow.user_id == user_id,
                QuizAttemptRow.episode_id == episode_id,
            )
            .order_by(QuizAttemptRow.attempted_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            QuizAttempt(
                id=r.id,
                user_id=r.user_id,
                episode_id=r.episode_id,
                score=r.score,
                passed=r.passed,
                attempted_at=r.attempted_at,
            )
            for r in rows
        ]


def _row_to_progress(row: EpisodeProgressRow) -> EpisodeProgress:
    return EpisodeProgress(
        user_id=row.user_id,
        episode_id=row.episode_id,
        course_id=row.course_id,
        watched_seconds=row.watched_seconds,
        is_completed=row.is_completed,
        completed_at=row.completed_at,
        last_watched_at=row.last_watched_at,
    )
