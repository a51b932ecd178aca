"""Loading-state wrapper around a single async fetch.

A `DataLoader` gives callers a uniform ``data`` / ``is_loading`` / ``error``
view of one async operation, optionally routed through the query cache.

Typical use::

    loader = DataLoader(fetch_moods, cache_key=f"mood_entries:{user_id}:10")
    await loader.start()
    ...
    await loader.refetch()   # drops the cached entry and loads again

Loads are not cancelled or sequenced. If a refetch or dependency change
starts a new load while an older one is still running, both complete and
whichever finishes last sets ``data``.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, Tuple, TypeVar

from zenflow import config
from zenflow.connectors.cache import QueryCache, query_cache

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOAD_TIMEOUT = 15.0


@dataclass
class LoaderState(Generic[T]):
    data: Optional[T]
    is_loading: bool
    error: Optional[Exception]


class DataLoader(Generic[T]):
    """Tracks loading/error/data state for one fetch function."""

    def __init__(
        self,
        fetch_fn: Callable[[], Awaitable[T]],
        cache_key: Optional[str] = None,
        cache_ttl: Optional[float] = None,
        initial_data: Optional[T] = None,
        dependencies: Optional[Sequence[Any]] = None,
        on_success: Optional[Callable[[T], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        enabled: bool = True,
        cache: Optional[QueryCache] = None,
        timeout: Optional[float] = None,
    ):
        self.fetch_fn = fetch_fn
        self.cache_key = cache_key
        self.cache_ttl = cache_ttl
        self.on_success = on_success
        self.on_error = on_error
        self.enabled = enabled
        self.cache = cache if cache is not None else query_cache
        self.timeout = timeout if timeout is not None else config.load_timeout(LOAD_TIMEOUT)
        self._dependencies: Tuple[Any, ...] = tuple(dependencies or ())

        self.data: Optional[T] = initial_data
        self.is_loading = enabled
        self.error: Optional[Exception] = None

    @property
    def state(self) -> LoaderState[T]:
        return LoaderState(data=self.data, is_loading=self.is_loading, error=self.error)

    async def start(self) -> None:
        """Initial load; does nothing when the loader is disabled."""
        if self.enabled:
            await self._load()

    async def update(self, dependencies: Optional[Sequence[Any]] = None, enabled: Optional[bool] = None) -> None:
        """Apply new dependencies and/or enabled flag, reloading if either changed."""
        changed = False
        if dependencies is not None:
            deps = tuple(dependencies)
            if len(deps) != len(self._dependencies) or any(
                a is not b and a != b for a, b in zip(deps, self._dependencies)
            ):
                changed = True
            self._dependencies = deps
        if enabled is not None and enabled != self.enabled:
            self.enabled = enabled
            changed = True
            if not enabled:
                self.is_loading = False

        if changed and self.enabled:
            await self._load()

    async def refetch(self) -> None:
        """Reload, bypassing any cached value for this loader's key."""
        if self.cache_key:
            self.cache.clear(self.cache_key)
        await self._load()

    def _on_timeout(self) -> None:
        logger.warning("Data loading timeout for %s", self.cache_key or "uncached request")
        self.is_loading = False

    async def _load(self) -> None:
        if not self.enabled:
            return

        self.is_loading = True
        self.error = None
        guard = asyncio.get_running_loop().call_later(self.timeout, self._on_timeout)

        try:
            if self.cache_key:
                result = await self.cache.with_cache(self.cache_key, self.fetch_fn, self.cache_ttl)
            else:
                result = await self.fetch_fn()

            self.data = result
            self.error = None
            if self.on_success:
                self.on_success(result)
        except Exception as exc:
            logger.error("Error in data loader for %s: %s", self.cache_key or "uncached request", exc)
            self.error = exc
            if self.on_error:
                self.on_error(exc)
        finally:
            guard.cancel()
            self.is_loading = False


async def prefetch_data(
    cache_key: str,
    fetch_fn: Callable[[], Awaitable[T]],
    cache_ttl: Optional[float] = None,
    cache: Optional[QueryCache] = None,
) -> T:
    """Warm the cache for cache_key so a later loader starts from a hit."""
    target = cache if cache is not None else query_cache
    return await target.with_cache(cache_key, fetch_fn, cache_ttl)
