import asyncio

import pytest

from zenflow.batch_loader import ParallelResult, batch_load, parallel_load


def _pager(sizes, page_size):
    """Build a fetch_fn whose page N holds sizes[N] items (full pages past the end)."""
    calls = []

    async def fetch(page, size):
        assert size == page_size
        calls.append(page)
        n = sizes[page] if page < len(sizes) else page_size
        return [f"p{page}-{i}" for i in range(n)]

    return fetch, calls


def test_batch_load_stops_on_short_page():
    fetch, calls = _pager([10, 10, 4], page_size=10)
    items = asyncio.run(batch_load(fetch, page_size=10))
    assert calls == [0, 1, 2]
    assert len(items) == 24
    assert items[0] == "p0-0"
    assert items[-1] == "p2-3"


def test_batch_load_respects_max_batches():
    fetch, calls = _pager([], page_size=10)
    items = asyncio.run(batch_load(fetch, page_size=10, max_batches=3))
    assert calls == [0, 1, 2]
    assert len(items) == 30


def test_batch_load_stop_condition_checked_after_full_page():
    fetch, calls = _pager([], page_size=10)
    items = asyncio.run(batch_load(fetch, page_size=10, stop_condition=lambda acc: len(acc) >= 5))
    assert calls == [0]
    assert len(items) == 10


def test_batch_load_preserves_page_order():
    fetch, _ = _pager([3, 3, 1], page_size=3)
    items = asyncio.run(batch_load(fetch, page_size=3))
    assert items == ["p0-0", "p0-1", "p0-2", "p1-0", "p1-1", "p1-2", "p2-0"]


def test_batch_load_defaults():
    fetch, calls = _pager([], page_size=50)
    items = asyncio.run(batch_load(fetch))
    assert len(calls) == 10
    assert len(items) == 500


def test_batch_load_empty_first_page():
    fetch, calls = _pager([0], page_size=10)
    assert asyncio.run(batch_load(fetch, page_size=10)) == []
    assert calls == [0]


def test_batch_load_error_aborts_loop():
    calls = []

    async def fetch(page, size):
        calls.append(page)
        if page == 1:
            raise RuntimeError("page 1 failed")
        return list(range(size))

    with pytest.raises(RuntimeError, match="page 1 failed"):
        asyncio.run(batch_load(fetch, page_size=5))
    assert calls == [0, 1]


def test_parallel_load_isolates_failures():
    err = ValueError("nope")

    async def ok():
        return 1

    async def bad():
        raise err

    res = asyncio.run(parallel_load({"a": ok, "b": bad}))
    assert isinstance(res, ParallelResult)
    assert res.results == {"a": 1}
    assert res.errors == {"b": err}
    assert res.has_errors is True
    assert "b" not in res.results


def test_parallel_load_all_success():
    async def one():
        return 1

    async def empty():
        return []

    res = asyncio.run(parallel_load({"one": one, "empty": empty}))
    assert res.results == {"one": 1, "empty": []}
    assert res.errors == {}
    assert res.has_errors is False
    assert res.to_dict() == {"results": {"one": 1, "empty": []}, "errors": {}, "has_errors": False}


def test_parallel_load_runs_sources_concurrently():
    started = []
    release = None

    async def make(name):
        started.append(name)
        await release.wait()
        return name

    async def _inner():
        nonlocal release
        release = asyncio.Event()

        async def opener():
            # let every source start before releasing them
            while len(started) < 2:
                await asyncio.sleep(0)
            release.set()

        task = asyncio.ensure_future(opener())
        res = await parallel_load({"x": lambda: make("x"), "y": lambda: make("y")})
        await task
        return res

    res = asyncio.run(_inner())
    assert set(res.results) == {"x", "y"}


def test_parallel_load_key_set_matches_input():
    async def fail():
        raise RuntimeError("x")

    async def ok():
        return None

    sources = {"a": ok, "b": fail, "c": ok, "d": fail}
    res = asyncio.run(parallel_load(sources))
    assert set(res.results) | set(res.errors) == set(sources)
    assert set(res.results) & set(res.errors) == set()
    assert res.results["a"] is None


def test_parallel_load_logs_failures(caplog):
    async def bad():
        raise RuntimeError("down")

    with caplog.at_level("ERROR", logger="zenflow.batch_loader"):
        asyncio.run(parallel_load({"profile": bad}))
    assert "Error loading profile" in caplog.text


def test_parallel_load_empty_sources():
    res = asyncio.run(parallel_load({}))
    assert res.results == {}
    assert res.has_errors is False
