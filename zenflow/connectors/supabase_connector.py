"""Read-only connector for the hosted Supabase REST (PostgREST) endpoint.

It deliberately avoids network calls at import time. Configure it with the
`SUPABASE_URL` and `SUPABASE_ANON_KEY` environment variables, or pass the
values explicitly (useful for tests).

Notes:
- Uses an HTTPX async client, created lazily on the first request.
- Filters map to PostgREST query params: ``{"user_id": "u1"}`` becomes
  ``user_id=eq.u1`` and ``{"date": ("gte", "2024-01-01")}`` becomes
  ``date=gte.2024-01-01``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from zenflow import config

logger = logging.getLogger(__name__)


class SupabaseConnector:
    """Async connector with simple retry/backoff.

    - HTTP 429 honours Retry-After and retries.
    - Transport errors and timeouts are retried with a linear backoff.
    - Other HTTP errors raise immediately.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = (url or config.supabase_url() or "").rstrip("/") or None
        self.key = key or config.supabase_key()
        self.timeout = timeout if timeout is not None else config.http_timeout()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _client_instance(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    def _headers(self) -> Dict[str, str]:
        return {"apikey": self.key or "", "Authorization": f"Bearer {self.key}"}

    @staticmethod
    def _params(
        filters: Optional[Mapping[str, Any]],
        columns: str,
        order: Optional[str],
        ascending: bool,
        limit: Optional[int],
        offset: Optional[int],
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"select": columns}
        for column, value in (filters or {}).items():
            if isinstance(value, tuple):
                op, operand = value
            else:
                op, operand = "eq", value
            if isinstance(operand, bool):
                operand = "true" if operand else "false"
            params[column] = f"{op}.{operand}"
        if order:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
        if limit is not None:
            params["limit"] = limit
        if offset:
            params["offset"] = offset
        return params

    async def _get(self, path: str, params: Dict[str, Any]) -> Any:
        if not self.url or not self.key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY must be set to query the backend")

        url = f"{self.url}/rest/v1/{path}"
        attempts = max(self.max_retries, 1)
        for attempt in range(1, attempts + 1):
            try:
                client = self._client_instance()
                resp = await client.get(url, headers=self._headers(), params=params)

                if resp.status_code == 429 and attempt < attempts:
                    try:
                        retry_after = float(resp.headers.get("Retry-After") or self.retry_delay)
                    except ValueError:
                        retry_after = self.retry_delay
                    logger.warning("Rate limited on %s, retrying in %.1fs", path, retry_after)
                    await asyncio.sleep(retry_after)
                    continue

                resp.raise_for_status()
                return resp.json()
            except httpx.TransportError as exc:
                if attempt < attempts:
                    logger.warning("Request to %s failed (attempt %d/%d): %s", path, attempt, attempts, exc)
                    await asyncio.sleep(self.retry_delay * attempt)
                    continue
                raise

    async def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        single: bool = False,
        columns: str = "*",
    ) -> Any:
        """Fetch rows from a table.

        Args:
            table: Table name, e.g. ``mood_entries``
            filters: Column filters (see module docstring)
            order: Column to sort by
            ascending: Sort direction when ``order`` is given
            limit: Maximum rows to return
            offset: Rows to skip
            single: Return the first row (or None) instead of a list
            columns: PostgREST ``select`` expression

        Returns:
            A list of row dicts, or a single row dict / None when ``single``.
        """
        params = self._params(filters, columns, order, ascending, 1 if single else limit, offset)
        rows = await self._get(table, params)
        if single:
            return rows[0] if rows else None
        return rows or []

    async def fetch_page(
        self, table: str, page: int, page_size: int, order: str = "id", **select_kwargs: Any
    ) -> List[Dict[str, Any]]:
        """Page fetch compatible with `batch_load`.

        Offset paging is only stable over an ordered result, so rows are
        always sorted (by ``id`` unless another column is given).
        """
        for reserved in ("limit", "offset", "single"):
            if reserved in select_kwargs:
                raise TypeError(f"fetch_page() sets '{reserved}' itself")
        return await self.select(table, order=order, limit=page_size, offset=page * page_size, **select_kwargs)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
