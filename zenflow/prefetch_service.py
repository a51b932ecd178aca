"""Warm the query cache with a user's most-used data.

Called right after sign-in so the first dashboard render is served from
cache. Failures are logged and never raised: a failed prefetch only means
the views load their own data later.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, timedelta
from typing import Any, List, Optional

from zenflow.batch_loader import ParallelResult, parallel_load
from zenflow.connectors.cache import QueryCache, query_cache
from zenflow.connectors.supabase_connector import SupabaseConnector

logger = logging.getLogger(__name__)

PROFILE_TTL = 5 * 60.0
RECENT_TTL = 2 * 60.0
HISTORY_TTL = 5 * 60.0
HISTORY_DAYS = 7


def prefetch_keys(user_id: str) -> List[str]:
    """Every cache key written by a prefetch for user_id."""
    return [
        f"profile:{user_id}",
        f"wellness_trends:{user_id}:recent",
        f"mood_entries:{user_id}:10",
        f"active_tasks:{user_id}",
        f"incomplete_tasks:{user_id}:20",
        f"workouts:{user_id}",
        f"moods:{user_id}",
    ]


class PrefetchService:
    def __init__(self, connector: Optional[SupabaseConnector] = None, cache: Optional[QueryCache] = None):
        self._connector = connector
        self.cache = cache if cache is not None else query_cache
        self._task: Optional[asyncio.Task] = None

    @property
    def connector(self) -> SupabaseConnector:
        if self._connector is None:
            self._connector = SupabaseConnector()
        return self._connector

    @property
    def is_prefetching(self) -> bool:
        return self._task is not None and not self._task.done()

    async def prefetch_user_data(self, user_id: str) -> Optional[ParallelResult]:
        """Prefetch critical data for user_id.

        A call made while another prefetch is still running joins that one
        instead of starting a second round of requests.
        """
        if self._task is not None and not self._task.done():
            return await asyncio.shield(self._task)

        self._task = asyncio.ensure_future(self._do_prefetch(user_id))
        try:
            return await asyncio.shield(self._task)
        finally:
            if self._task is not None and self._task.done():
                self._task = None

    async def _do_prefetch(self, user_id: str) -> Optional[ParallelResult]:
        logger.info("Prefetching user data for %s", user_id)
        start = time.perf_counter()
        conn = self.connector
        since = (date.today() - timedelta(days=HISTORY_DAYS)).isoformat()

        async def profile() -> Any:
            data = await conn.select("profiles", filters={"user_id": user_id}, single=True)
            self.cache.set(f"profile:{user_id}", data, PROFILE_TTL)
            return data

        async def recent_metrics() -> Any:
            data = await conn.select(
                "wellness_trends", filters={"user_id": user_id}, order="date", ascending=False, limit=7
            )
            self.cache.set(f"wellness_trends:{user_id}:recent", data, RECENT_TTL)
            return data

        async def mood_entries() -> Any:
            data = await conn.select(
                "mood_entries", filters={"user_id": user_id}, order="recorded_at", ascending=False, limit=10
            )
            self.cache.set(f"mood_entries:{user_id}:10", data, RECENT_TTL)
            return data

        async def active_tasks() -> Any:
            data = await self.cache.with_cache(
                f"incomplete_tasks:{user_id}:20",
                lambda: conn.select(
                    "daily_tasks",
                    filters={"user_id": user_id, "completed": False},
                    order="due_date",
                    limit=20,
                ),
                RECENT_TTL,
            )
            self.cache.set(f"active_tasks:{user_id}", data, RECENT_TTL)
            return data

        async def history(table: str, key: str) -> Any:
            data = await conn.select(
                table,
                filters={"user_id": user_id, "recorded_at": ("gte", since)},
                order="recorded_at",
                ascending=False,
            )
            self.cache.set(key, data, HISTORY_TTL)
            return data

        try:
            result = await parallel_load(
                {
                    "profile": profile,
                    "recent_metrics": recent_metrics,
                    "mood_entries": mood_entries,
                    "active_tasks": active_tasks,
                    "workouts": lambda: history("workouts", f"workouts:{user_id}"),
                    "moods": lambda: history("mood_entries", f"moods:{user_id}"),
                }
            )
        except Exception as exc:
            logger.error("Error during prefetch for %s: %s", user_id, exc)
            return None

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("Prefetching completed in %.2fms (%d failed)", elapsed_ms, len(result.errors))
        return result

    def clear_prefetched_data(self, user_id: str) -> List[str]:
        """Drop everything a prefetch wrote for user_id, e.g. on sign-out.

        Returns the keys that actually held a live entry.
        """
        cleared = []
        for key in prefetch_keys(user_id):
            if self.cache.get(key) is not None:
                cleared.append(key)
            self.cache.clear(key)
        return cleared


# Single global service used by the CLI
prefetch_service = PrefetchService()
