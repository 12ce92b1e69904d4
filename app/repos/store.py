"""Repository bundle handed to the engine services.

Services take a ``Store`` rather than individual repos so a single request
works against one consistent backend: the process-wide in-memory store in
dev/test, or a set of Pg repos sharing one AsyncSession (one transaction).
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.repos.course_repo import CourseRepo, InMemoryCourseRepo
from app.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from app.repos.key_repo import InMemoryKeyRepo, KeyRepo
from app.repos.pg_course_repo import PgCourseRepo
from app.repos.pg_enrollment_repo import PgEnrollmentRepo
from app.repos.pg_key_repo import PgKeyRepo
from app.repos.pg_progress_repo import PgProgressRepo
from app.repos.pg_user_repo import PgUserRepo
from app.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from app.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass(frozen=True)
class Store:
    users: UserRepo
    courses: CourseRepo
    keys: KeyRepo
    enrollments: EnrollmentRepo
    progress: ProgressRepo
    # Cache keys to drop again once the transaction commits (Pg stores only)
    stale_cache_keys: list[str] | None = None


def new_memory_store() -> Store:
    return Store(
        users=InMemoryUserRepo(),
        courses=InMemoryCourseRepo(),
        keys=InMemoryKeyRepo(),
        enrollments=InMemoryEnrollmentRepo(),
        progress=InMemoryProgressRepo(),
    )


def pg_store(session: AsyncSession) -> Store:
    return Store(
        users=PgUserRepo(session),
        courses=PgCourseRepo(session),
        keys=PgKeyRepo(session),
        enrollments=PgEnrollmentRepo(session),
        progress=PgProgressRepo(session),
        stale_cache_keys=[],
    )


def clear_memory_store(store: Store) -> None:
    for repo in (store.users, store.courses, store.keys, store.enrollments, store.progress):
        repo.clear()  # type: ignore[attr-defined]


# In-process store used when DATABASE_URL is unset
memory_store = new_memory_store()
