"""Tests for environment configuration and JSON logging."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from cohort_leaderboard.config import (
    DEFAULT_MAX_PAGE_SIZE,
    DEFAULT_PAGE_SIZE,
    resolve_db_path,
    resolve_log_level,
    resolve_max_page_size,
    resolve_page_size,
)
from cohort_leaderboard.log_config import LeaderboardJsonFormatter, setup_logging


def test_resolve_db_path_precedence(tmp_path: Path, monkeypatch) -> None:
    env_path = tmp_path / "env" / "students.duckdb"
    override = tmp_path / "cli" / "students.duckdb"
    monkeypatch.setenv("COHORT_LEADERBOARD_DB_PATH", str(env_path))

    assert resolve_db_path() == str(env_path.resolve())
    assert resolve_db_path(str(override)) == str(override.resolve())
    assert override.parent.is_dir()


def test_page_sizes_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("COHORT_LEADERBOARD_PAGE_SIZE", "20")
    monkeypatch.setenv("COHORT_LEADERBOARD_MAX_PAGE_SIZE", "40")

    assert resolve_page_size() == 20
    assert resolve_max_page_size() == 40
    assert resolve_page_size(5) == 5


@pytest.mark.parametrize("raw", ["", "many", "0", "-3"])
def test_invalid_page_size_env_falls_back_to_default(raw: str, monkeypatch) -> None:
    monkeypatch.setenv("COHORT_LEADERBOARD_PAGE_SIZE", raw)
    monkeypatch.setenv("COHORT_LEADERBOARD_MAX_PAGE_SIZE", raw)

    assert resolve_page_size() == DEFAULT_PAGE_SIZE
    assert resolve_max_page_size() == DEFAULT_MAX_PAGE_SIZE


def test_resolve_log_level(monkeypatch) -> None:
    monkeypatch.delenv("COHORT_LEADERBOARD_LOG_LEVEL", raising=False)
    assert resolve_log_level() == "INFO"

    monkeypatch.setenv("COHORT_LEADERBOARD_LOG_LEVEL", "debug")
    assert resolve_log_level() == "DEBUG"
    assert resolve_log_level("warning") == "WARNING"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def test_json_formatter_fields() -> None:
    formatter = LeaderboardJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s")
    record = logging.LogRecord(
        name="cohort_leaderboard.leaderboard",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Store %s query failed",
        args=("ranking",),
        exc_info=None,
    )

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "Store ranking query failed"
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "cohort_leaderboard.leaderboard"
    assert "timestamp" in payload


def test_setup_logging_installs_single_json_handler() -> None:
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    try:
        setup_logging("debug")
        setup_logging("debug")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, LeaderboardJsonFormatter)
        assert logging.getLogger("uvicorn.access").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
