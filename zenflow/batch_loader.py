"""Helpers for loading larger or multi-source datasets.

`batch_load` walks a paginated source one page at a time. `parallel_load`
fans out several independent loads and keeps going when some of them fail.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


async def batch_load(
    fetch_fn: Callable[[int, int], Awaitable[List[Any]]],
    page_size: int = 50,
    max_batches: int = 10,
    stop_condition: Optional[Callable[[List[Any]], bool]] = None,
) -> List[Any]:
    """Load pages sequentially and return all items in page order.

    Args:
        fetch_fn: Coroutine function called as ``fetch_fn(page, page_size)``
        page_size: Items requested per page; a shorter page means no more data
        max_batches: Upper bound on the number of pages requested
        stop_condition: Optional predicate over everything loaded so far,
            checked after each page is appended

    Returns:
        The concatenated items. If any page raises, the exception propagates
        and nothing is returned.
    """
    items: List[Any] = []
    page = 0

    while page < max_batches:
        batch = await fetch_fn(page, page_size)
        items.extend(batch)
        page += 1

        if len(batch) < page_size:
            break
        if stop_condition is not None and stop_condition(items):
            break

    return items


@dataclass
class ParallelResult:
    results: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {"results": self.results, "errors": self.errors, "has_errors": self.has_errors}


async def parallel_load(sources: Mapping[str, Callable[[], Awaitable[Any]]]) -> ParallelResult:
    """Run every source concurrently, isolating failures per key.

    Keys whose loader raised are absent from ``results`` and present in
    ``errors``; check key membership rather than truthiness.
    """
    out = ParallelResult()

    async def _run(key: str, load_fn: Callable[[], Awaitable[Any]]) -> None:
        try:
            out.results[key] = await load_fn()
        except Exception as exc:
            logger.error("Error loading %s: %s", key, exc)
            out.errors[key] = exc

    await asyncio.gather(*(_run(k, fn) for k, fn in sources.items()))
    return out
