"""Cache for per-(user, course) access decisions.

Access checks are read-through: the checker asks the cache first and,
on a miss, computes the decision from the billing and catalog gateways
and stores it.

INVALIDATION
------------
Two complementary strategies:

  1. TTL: every decision auto-expires after ACCESS_CACHE_TTL seconds
     (300 by default).  This is the safety net for level changes that
     happen without passing through this service.

  2. Explicit invalidation: every reconciliation starts by dropping all
     cached decisions for the user it is about to reconcile, so the
     bundle cascade never acts on a decision computed from the levels
     the user held before the triggering event.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable


def access_key(user_id: int, course_id: int) -> str:
    return f"{user_id}:{course_id}"


@runtime_checkable
class AccessCache(Protocol):
    def get(self, key: str) -> bool | None:
        """Fetch a cached decision.  Returns None on cache miss."""
        ...

    def set(self, key: str, value: bool, ttl_seconds: int) -> None: ...

    def invalidate_user(self, user_id: int) -> None:
        """Drop every cached decision for one user."""
        ...


class InMemoryAccessCache:
    """Process-local cache with TTL enforcement against an injectable clock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._store: dict[str, tuple[bool, float]] = {}

    def get(self, key: str) -> bool | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: bool, ttl_seconds: int) -> None:
        self._store[key] = (value, self._clock() + ttl_seconds)

    def invalidate_user(self, user_id: int) -> None:
        prefix = f"{user_id}:"
        for key in [k for k in self._store if k.startswith(prefix)]:
            del self._store[key]

    def clear(self) -> None:
        self._store.clear()


class RedisAccessCache:
    """Redis-backed cache, shared across all API instances."""

    # Key prefix keeps access decisions apart from anything else in the db.
    _PREFIX = "access:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    def get(self, key: str) -> bool | None:
        raw = self._redis.get(f"{self._PREFIX}{key}")
        if raw is None:
            return None
        return raw == "1"

    def set(self, key: str, value: bool, ttl_seconds: int) -> None:
        self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, "1" if value else "0")

    def invalidate_user(self, user_id: int) -> None:
        # SCAN, not KEYS: KEYS blocks the server while it walks every key.
        keys = list(
            self._redis.scan_iter(match=f"{self._PREFIX}{user_id}:*", count=100)
        )
        if keys:
            self._redis.delete(*keys)
