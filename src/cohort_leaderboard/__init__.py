"""
Cohort leaderboard - tie-aware, paginated rankings of student records.

Students of one admission cohort are ranked by their cumulative average,
by one term's score, or by the cohort's most recent term. Tied scores
share a dense rank, and every page reports ranks that are correct for the
whole cohort.

Example usage:
    >>> from cohort_leaderboard import DuckDBStorage, LeaderboardService
    >>> service = LeaderboardService(DuckDBStorage("students.duckdb"))
    >>> page = service.get_overall_ranking(2022, page=2, page_size=25)
    >>> [(entry.rank, entry.record.name) for entry in page.entries]
"""

from .errors import LeaderboardError, NotFoundError, StoreError, ValidationError
from .leaderboard import CohortStatistics, LeaderboardService, Page
from .ranking import RankedEntry
from .storage import (
    DuckDBStorage,
    RankingFilter,
    RankingMetric,
    StudentRecord,
    StudentStore,
    TermScore,
)
from .storage.memory import InMemoryStorage

__all__ = [
    # Service
    "LeaderboardService",
    "Page",
    "CohortStatistics",
    "RankedEntry",
    # Storage
    "StudentStore",
    "DuckDBStorage",
    "InMemoryStorage",
    "StudentRecord",
    "TermScore",
    "RankingFilter",
    "RankingMetric",
    # Errors
    "LeaderboardError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
]
