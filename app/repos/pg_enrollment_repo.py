"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import EnrollmentRow
from app.models.enrollment import Enrollment


class PgEnrollmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        row = await self._session.get(EnrollmentRow, (user_id, course_id))
        return _row_to_enrollment(row) if row is not None else None

    async def ensure(self, enrollment: Enrollment) -> tuple[Enrollment, bool]:
        stmt = (
            insert(EnrollmentRow)
            .values(
                user_id=enrollment.user_id,
                course_id=enrollment.course_id,
                enrolled_at=enrollment.enrolled_at,
                progress_percentage=enrollment.progress_percentage,
                completed_episodes=enrollment.completed_episodes,
                completed_at=enrollment.completed_at,
                last_accessed_at=enrollment.last_accessed_at,
                registration_key_id=enrollment.registration_key_id,
            )
            .on_conflict_do_nothing(
                index_elements=[EnrollmentRow.user_id, EnrollmentRow.course_id]
            )
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 1:
            return enrollment, True
        # Conflict means the row exists
        existing = select(EnrollmentRow).where(
            EnrollmentRow.user_id == enrollment.user_id,
            EnrollmentRow.course_id == enrollment.course_id,
        )
        row = (await self._session.execute(existing)).scalar_one()
        return _row_to_enrollment(row), False

    async def update_aggregate(
        self,
        user_id: UUID,
        course_id: UUID,
        *,
        completed_episodes: int,
        progress_percentage: int,
        now: int,
    ) -> Enrollment | None:
        values: dict[str, object] = {
            "completed_episodes": completed_episodes,
            "progress_percentage": progress_percentage,
            "last_accessed_at": now,
        }
        if progress_percentage >= 100:
            # set once, never cleared
            values["completed_at"] = func.coalesce(EnrollmentRow.completed_at, now)
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.user_id == user_id,
                EnrollmentRow.course_id == course_id,
            )
            .values(**values)
            .returning(EnrollmentRow)
            .execution_options(synchronize_session=False)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_enrollment(row) if row is not None else None

    async def list_for_user(self, user_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.user_id == user_id)
            .order_by(EnrollmentRow.enrolled_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        user_id=row.user_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        progress_percentage=row.progress_percentage,
        completed_episodes=row.completed_episodes,
        completed_at=row.completed_at,
        last_accessed_at=row.last_accessed_at,
        registration_key_id=row.registration_key_id,
    )
