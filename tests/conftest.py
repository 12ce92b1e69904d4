from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.main import app  # noqa: E402
from app.models.course import Course, Episode  # noqa: E402
from app.models.user import User  # noqa: E402
from app.repos import store as store_module  # noqa: E402
from app.repos.store import Store, clear_memory_store, new_memory_store  # noqa: E402
from app.services import catalog_service, token_service  # noqa: E402
from app.services.cache import InMemoryCacheService, cache_service  # noqa: E402


@pytest.fixture(autouse=True)
def reset_memory_store() -> None:
    """Clear the app-wide in-memory store between tests."""
    clear_memory_store(store_module.memory_store)


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if isinstance(cache_service, InMemoryCacheService):
        cache_service.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def store() -> Store:
    """Fresh store for service-level tests."""
    return new_memory_store()


@pytest.fixture
def app_store() -> Store:
    """The store the HTTP app reads and writes."""
    return store_module.memory_store


def mint_token(user_id: UUID | str | None = None, roles: list[str] | None = None) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(user_id or uuid4()), roles=roles)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token() -> str:
    return mint_token(roles=["admin"])


# ---------------------------------------------------------------------------
# Seeding helpers (work against any Store)
# ---------------------------------------------------------------------------


def seed_user(store: Store, email: str = "learner@example.com") -> User:
    user = User.new(email=email, roles=("learner",))
    asyncio.run(store.users.add(user))
    return user


def seed_course(
    store: Store,
    durations: tuple[int | None, ...] = (10, 10, 10),
    *,
    slug: str | None = None,
    is_free: bool = False,
    free_orders: tuple[int, ...] = (),
) -> tuple[Course, list[Episode]]:
    """Create a course with one episode per entry in ``durations`` (minutes)."""

    async def _seed() -> tuple[Course, list[Episode]]:
        course = await catalog_service.create_course(
            store,
            slug=slug or f"course-{uuid4().hex[:8]}",
            title="Test course",
            is_free=is_free,
        )
        episodes = [
            await catalog_service.add_episode(
                store,
                course_id=course.id,
                order=i,
                title=f"Episode {i}",
                duration_minutes=d,
                is_free=i in free_orders,
            )
            for i, d in enumerate(durations, start=1)
        ]
        return course, episodes

    return asyncio.run(_seed())
