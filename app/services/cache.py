"""Read-through cache for catalog reads.

Episode lists change only when an admin adds an episode or edits a quiz,
while every learner page load reads them.  Entries expire after
CATALOG_CACHE_TTL seconds and are deleted explicitly on catalog writes.

Only catalog data is cached.  Keys, enrollments and progress are always
read from the store.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from app.core.metrics import CACHE_OPERATIONS
from app.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...
    async def delete(self, key: str) -> None: ...


class InMemoryCacheService:
    """Process-local cache without TTL enforcement; conftest clears it."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        value = self._entries.get(key)
        CACHE_OPERATIONS.labels(operation="hit" if value is not None else "miss").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        self._entries[key] = value
        CACHE_OPERATIONS.labels(operation="set").inc()

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)
        CACHE_OPERATIONS.labels(operation="invalidate").inc()

    def clear(self) -> None:
        self._entries.clear()


class RedisCacheService:
    # Every catalog entry lives under this prefix
    _PREFIX = "catalog:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(f"{self._PREFIX}{key}")
        CACHE_OPERATIONS.labels(operation="hit" if value is not None else "miss").inc()
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)
        CACHE_OPERATIONS.labels(operation="set").inc()

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")
        CACHE_OPERATIONS.labels(operation="invalidate").inc()


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
