"""Environment-driven settings.

Values are read at call time rather than import time so tests can tweak
them with ``monkeypatch.setenv``. A local ``.env`` file is loaded once on
import when present.
"""
from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def supabase_url() -> Optional[str]:
    url = os.getenv("SUPABASE_URL")
    return url.rstrip("/") if url else None


def supabase_key() -> Optional[str]:
    return os.getenv("SUPABASE_ANON_KEY") or None


def cache_ttl(default: float = 60.0) -> float:
    return _float_env("ZENFLOW_CACHE_TTL", default)


def load_timeout(default: float = 15.0) -> float:
    return _float_env("ZENFLOW_LOAD_TIMEOUT", default)


def http_timeout(default: float = 15.0) -> float:
    return _float_env("ZENFLOW_HTTP_TIMEOUT", default)


def log_level() -> str:
    return os.getenv("ZENFLOW_LOG_LEVEL", "INFO").upper()
