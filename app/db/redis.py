"""Redis connection management.

Redis holds only derived, disposable data for this service: the catalog
cache (episode lists per course).  Nothing the engine's invariants depend on
lives in Redis; registration keys, enrollments and progress are PostgreSQL
(or in-memory) only.  When REDIS_URL is unset, redis_pool is None and the
cache falls back to an in-process dict.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from app.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Ping on startup, close the pool on shutdown.

    A failed ping is logged but does not stop the app: the cache is
    optional and every read falls through to the store on a miss.
    """
    if redis_pool is None:
        logger.info("No REDIS_URL configured; catalog cache is in-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected")
    except Exception:
        logger.exception("Redis connection failed on startup")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
