"""Storage backends for cohort leaderboards."""

from .base import (
    RankingFilter,
    RankingMetric,
    StudentRecord,
    StudentStore,
    TermScore,
)
from .duckdb import DuckDBStorage

__all__ = [
    "RankingFilter",
    "RankingMetric",
    "StudentRecord",
    "StudentStore",
    "TermScore",
    "DuckDBStorage",
]
