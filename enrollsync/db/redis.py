"""Redis connection management.

This module mirrors the pattern in engine.py for the database: when
REDIS_URL is configured we create a real client backed by a connection
pool; when it's None (local dev, tests) the access cache falls back to
its in-memory implementation and no Redis server is needed.

The only Redis consumer is the access-check cache.  Entries are shared
by every API process and expire through TTL.

The client is synchronous: reconciliation runs on the calling thread,
so there is no event loop to await on.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis

from enrollsync.core.config import SETTINGS

logger = logging.getLogger(__name__)

# None when REDIS_URL is not set; consumers check for None and fall back.
if SETTINGS.redis_url:
    redis_client: redis.Redis | None = redis.Redis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_client = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis, mirrors lifespan_db()."""
    if redis_client is None:
        logger.info("No REDIS_URL configured, access cache is in-memory")
        yield
        return

    try:
        redis_client.ping()
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except redis.RedisError:
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    redis_client.close()
    logger.info("Redis connection pool closed")
