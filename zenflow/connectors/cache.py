"""Small in-memory TTL cache for backend query results.

This is intentionally tiny and process-local. It avoids repeated calls to
the hosted backend when several views ask for the same rows within a short
window. Entries expire lazily: an expired entry is only dropped the next
time somebody reads it.

Concurrent `with_cache` calls on a cold key are not coalesced; each one
runs its producer. Producers are expected to be idempotent reads.
"""
from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from zenflow import config

DEFAULT_TTL = 60.0

# (value, stored_at, ttl)
CacheEntry = Tuple[Any, float, float]


class QueryCache:
    """Key -> value store with a per-entry time-to-live (seconds)."""

    def __init__(self, default_ttl: Optional[float] = None, clock: Callable[[], float] = time.time) -> None:
        self.default_ttl = default_ttl if default_ttl is not None else config.cache_ttl(DEFAULT_TTL)
        self._clock = clock
        self._cache: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Any:
        """Return the stored value, or None when missing or expired."""
        ent = self._cache.get(key)
        if ent is None:
            return None
        value, stored_at, ttl = ent
        if self._clock() - stored_at > ttl:
            del self._cache[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        if ttl is None:
            ttl = self.default_ttl
        self._cache[key] = (value, self._clock(), ttl)

    def clear(self, key: Optional[str] = None) -> None:
        """Drop a single key, or everything when no key is given."""
        if key is None:
            self._cache.clear()
        else:
            self._cache.pop(key, None)

    async def with_cache(self, key: str, producer: Callable[[], Awaitable[Any]], ttl: Optional[float] = None) -> Any:
        """Return the cached value for key if fresh; otherwise await producer(), cache and return it.

        producer is a zero-arg coroutine function. If it raises, nothing is
        cached and the exception reaches the caller unchanged.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = await producer()
        self.set(key, value, ttl)
        return value

    def info(self) -> Dict[str, float]:
        now = self._clock()
        return {k: now - stored_at for k, (_, stored_at, ttl) in self._cache.items() if now - stored_at <= ttl}


# Single process-wide cache used when callers don't pass their own
query_cache = QueryCache()


def clear_cache() -> None:
    query_cache.clear()


def cache_info() -> Dict[str, float]:
    return query_cache.info()
