"""Admin CLI helper to warm or clear a user's cached data.

This module exposes programmatic `run_prefetch` / `run_clear` functions and
a CLI entrypoint. The backend is configured through `SUPABASE_URL` and
`SUPABASE_ANON_KEY` (a local `.env` file is honoured).

The query cache lives in this process only. From the command line,
`prefetch` is a smoke check of the backend reads, and `clear` lists only
keys this process actually held (none in a fresh run).

Usage:
    python -m zenflow.admin_cli prefetch --user-id <uuid>
    python -m zenflow.admin_cli clear --user-id <uuid>
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from zenflow import config


def _service(service=None):
    if service is not None:
        return service
    # Deferred so the shared service, and the connector it builds lazily, only exist once a command runs
    from zenflow.prefetch_service import prefetch_service

    return prefetch_service


def run_prefetch(user_id: str, service=None) -> Dict[str, Any]:
    """Run a prefetch for user_id and summarise what landed in the cache."""
    svc = _service(service)

    async def _inner():
        try:
            return await svc.prefetch_user_data(user_id)
        finally:
            await svc.connector.close()

    result = asyncio.run(_inner())
    if result is None:
        return {"ok": False, "user_id": user_id, "error": "prefetch failed"}
    return {
        "ok": True,
        "user_id": user_id,
        "loaded": sorted(result.results),
        "errors": {k: str(v) for k, v in result.errors.items()},
        "cache": svc.cache.info(),
    }


def run_clear(user_id: str, service=None) -> Dict[str, Any]:
    svc = _service(service)
    return {"ok": True, "user_id": user_id, "cleared": svc.clear_prefetched_data(user_id)}


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Warm or clear cached wellness data for a user")
    p.add_argument("command", choices=["prefetch", "clear"], help="Action to run")
    p.add_argument("--user-id", required=True, help="User id whose data should be prefetched or cleared")

    args = p.parse_args(argv)
    logging.basicConfig(level=config.log_level(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        if args.command == "prefetch":
            res = run_prefetch(args.user_id)
        else:
            res = run_clear(args.user_id)
    except Exception as exc:
        print(json.dumps({"ok": False, "error": str(exc)}))
        return 2

    print(json.dumps(res))
    return 0 if res.get("ok") else 1


if __name__ == "__main__":
    raise SystemExit(main())  # pragma: no cover
