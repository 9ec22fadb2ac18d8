"""Ranking stages for cohort leaderboards."""

from .dense_rank import RankedEntry, assign_dense_ranks
from .metrics import DerivedMetrics, derive_metrics, latest_entry, round_score, term_score
from .pipeline import derive_candidates, paginate, rank_records, total_pages
from .sorter import RankCandidate, primary_value, secondary_value, sort_candidates

__all__ = [
    "DerivedMetrics",
    "derive_metrics",
    "latest_entry",
    "round_score",
    "term_score",
    "RankCandidate",
    "primary_value",
    "secondary_value",
    "sort_candidates",
    "RankedEntry",
    "assign_dense_ranks",
    "derive_candidates",
    "rank_records",
    "paginate",
    "total_pages",
]
