from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.enrollment import Enrollment


class EnrollmentRepo(Protocol):
    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None: ...
    async def ensure(self, enrollment: Enrollment) -> tuple[Enrollment, bool]: ...
    async def update_aggregate(
        self,
        user_id: UUID,
        course_id: UUID,
        *,
        completed_episodes: int,
        progress_percentage: int,
        now: int,
    ) -> Enrollment | None: ...
    async def list_for_user(self, user_id: UUID) -> list[Enrollment]: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[tuple[UUID, UUID], Enrollment] = {}

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        return self._rows.get((user_id, course_id))

    async def ensure(self, enrollment: Enrollment) -> tuple[Enrollment, bool]:
        """Insert unless an enrollment for (user, course) exists.

        Returns (stored enrollment, created).
        """
        pk = (enrollment.user_id, enrollment.course_id)
        with self._lock:
            existing = self._rows.get(pk)
            if existing is not None:
                return existing, False
            self._rows[pk] = enrollment
            return enrollment, True

    async def update_aggregate(
        self,
        user_id: UUID,
        course_id: UUID,
        *,
        completed_episodes: int,
        progress_percentage: int,
        now: int,
    ) -> Enrollment | None:
        pk = (user_id, course_id)
        with self._lock:
            current = self._rows.get(pk)
            if current is None:
                return None
            completed_at = current.completed_at
            if completed_at is None and progress_percentage >= 100:
                completed_at = now
            updated = replace(
                current,
                completed_episodes=completed_episodes,
                progress_percentage=progress_percentage,
                completed_at=completed_at,
                last_accessed_at=now,
            )
            self._rows[pk] = updated
            return updated

    async def list_for_user(self, user_id: UUID) -> list[Enrollment]:
        return sorted(
            (e for (uid, _), e in self._rows.items() if uid == user_id),
            key=lambda e: e.enrolled_at,
        )

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()
