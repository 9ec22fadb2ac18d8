"""
Configuration helpers for the leaderboard store and request defaults.
"""

from __future__ import annotations

import os
from pathlib import Path


DEFAULT_DB_PATH = "~/.cohort_leaderboard/students.duckdb"
ENV_DB_PATH = "COHORT_LEADERBOARD_DB_PATH"

DEFAULT_PAGE_SIZE = 50
ENV_PAGE_SIZE = "COHORT_LEADERBOARD_PAGE_SIZE"

DEFAULT_MAX_PAGE_SIZE = 100
ENV_MAX_PAGE_SIZE = "COHORT_LEADERBOARD_MAX_PAGE_SIZE"

DEFAULT_LOG_LEVEL = "INFO"
ENV_LOG_LEVEL = "COHORT_LEADERBOARD_LOG_LEVEL"


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) COHORT_LEADERBOARD_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def resolve_page_size(override: int | None = None) -> int:
    """Default page size used when a request does not name one."""
    if override is not None:
        return override
    return _int_from_env(ENV_PAGE_SIZE, DEFAULT_PAGE_SIZE)


def resolve_max_page_size(override: int | None = None) -> int:
    """Upper bound applied to any requested page size."""
    if override is not None:
        return override
    return _int_from_env(ENV_MAX_PAGE_SIZE, DEFAULT_MAX_PAGE_SIZE)


def resolve_log_level(override: str | None = None) -> str:
    return (override or os.getenv(ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper()
