from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.progress import EpisodeProgress, QuizAttempt


class ProgressRepo(Protocol):
    async def get(self, user_id: UUID, episode_id: UUID) -> EpisodeProgress | None: ...
    async def list_for_course(
        self, user_id: UUID, course_id: UUID
    ) -> list[EpisodeProgress]: ...
    async def record_watch(
        self,
        user_id: UUID,
        episode_id: UUID,
        course_id: UUID,
        watched_seconds: int,
        now: int,
    ) -> EpisodeProgress: ...
    async def mark_completed(
        self, user_id: UUID, episode_id: UUID, course_id: UUID, now: int
    ) -> tuple[EpisodeProgress, bool]: ...
    async def add_attempt(self, attempt: QuizAttempt) -> None: ...
    async def list_attempts(self, user_id: UUID, episode_id: UUID) -> list[QuizAttempt]: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[tuple[UUID, UUID], EpisodeProgress] = {}
        self._attempts: list[QuizAttempt] = []

    async def get(self, user_id: UUID, episode_id: UUID) -> EpisodeProgress | None:
        return self._rows.get((user_id, episode_id))

    async def list_for_course(self, user_id: UUID, course_id: UUID) -> list[EpisodeProgress]:
        return [
            p
            for (uid, _), p in self._rows.items()
            if uid == user_id and p.course_id == course_id
        ]

    async def record_watch(
        self,
        user_id: UUID,
        episode_id: UUID,
        course_id: UUID,
        watched_seconds: int,
        now: int,
    ) -> EpisodeProgress:
        """Merge a watch report: stored seconds become max(stored, reported)."""
        pk = (user_id, episode_id)
        with self._lock:
            current = self._rows.get(pk) or EpisodeProgress.empty(
                user_id=user_id, episode_id=episode_id, course_id=course_id
            )
            updated = replace(
                current,
                watched_seconds=max(current.watched_seconds, watched_seconds),
                last_watched_at=now,
            )
            self._rows[pk] = updated
            return updated

    async def mark_completed(
        self, user_id: UUID, episode_id: UUID, course_id: UUID, now: int
    ) -> tuple[EpisodeProgress, bool]:
        """Flip is_completed to True once.

        Returns (row, transitioned); transitioned is False when the episode
        was already complete.
        """
        pk = (user_id, episode_id)
        with self._lock:
            current = self._rows.get(pk) or EpisodeProgress.empty(
                user_id=user_id, episode_id=episode_id, course_id=course_id
            )
            if current.is_completed:
                return current, False
            updated = replace(current, is_completed=True, completed_at=now)
            self._rows[pk] = updated
            return updated, True

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        with self._lock:
            self._attempts.append(attempt)

    async def list_attempts(self, user_id: UUID, episode_id: UUID) -> list[QuizAttempt]:
        return [
            a
            for a in self._attempts
            if a.user_id == user_id and a.episode_id == episode_id
        ]

    def clear(self) -> None:
        with self._lock:
            self._rows.clear()
            self._attempts.clear()
