from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.exceptions import DuplicateCourseSlug, DuplicateEpisodeOrder
from app.models.course import Course, Episode, EpisodeQuiz


class CourseRepo(Protocol):
    async def add_course(self, course: Course) -> None: ...
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def list_courses(self) -> list[Course]: ...
    async def add_episode(self, episode: Episode) -> None: ...
    async def get_episode(self, episode_id: UUID) -> Episode | None: ...
    async def list_episodes(self, course_id: UUID) -> list[Episode]: ...
    async def set_quiz(self, quiz: EpisodeQuiz) -> EpisodeQuiz: ...
    async def get_quiz(self, episode_id: UUID) -> EpisodeQuiz | None: ...
    async def list_quizzes(self, course_id: UUID) -> dict[UUID, EpisodeQuiz]: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._courses: dict[UUID, Course] = {}
        self._episodes: dict[UUID, Episode] = {}
        self._quizzes: dict[UUID, EpisodeQuiz] = {}

    async def add_course(self, course: Course) -> None:
        with self._lock:
            if any(c.slug == course.slug for c in self._courses.values()):
                raise DuplicateCourseSlug(course.slug)
            self._courses[course.id] = course

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def list_courses(self) -> list[Course]:
        return sorted(self._courses.values(), key=lambda c: (c.created_at, c.slug))

    async def add_episode(self, episode: Episode) -> None:
        with self._lock:
            for existing in self._episodes.values():
                if (
                    existing.course_id == episode.course_id
                    and existing.order == episode.order
                ):
                    raise DuplicateEpisodeOrder(episode.order)
            self._episodes[episode.id] = episode

    async def get_episode(self, episode_id: UUID) -> Episode | None:
        return self._episodes.get(episode_id)

    async def list_episodes(self, course_id: UUID) -> list[Episode]:
        return sorted(
            (e for e in self._episodes.values() if e.course_id == course_id),
            key=lambda e: e.order,
        )

    async def set_quiz(self, quiz: EpisodeQuiz) -> EpisodeQuiz:
        with self._lock:
            current = self._quizzes.get(quiz.episode_id)
            stored = (
                quiz
                if current is None
                else replace(current, passing_score=quiz.passing_score, required=quiz.required)
            )
            self._quizzes[quiz.episode_id] = stored
            return stored

    async def get_quiz(self, episode_id: UUID) -> EpisodeQuiz | None:
        return self._quizzes.get(episode_id)

    async def list_quizzes(self, course_id: UUID) -> dict[UUID, EpisodeQuiz]:
        return {
            episode_id: quiz
            for episode_id, quiz in self._quizzes.items()
            if (ep := self._episodes.get(episode_id)) is not None
            and ep.course_id == course_id
        }

    def clear(self) -> None:
        with self._lock:
            self._courses.clear()
            self._episodes.clear()
            self._quizzes.clear()
