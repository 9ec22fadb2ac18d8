"""
Ordering of ranking candidates by a metric-specific composite key.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..storage.base import RankingMetric, StudentRecord
from .metrics import DerivedMetrics


@dataclass(frozen=True)
class RankCandidate:
    """A record paired with its derived metrics and sort values."""

    record: StudentRecord
    metrics: DerivedMetrics
    primary: Decimal
    secondary: Decimal

    @property
    def name(self) -> str:
        return self.record.name


def primary_value(metric: RankingMetric, metrics: DerivedMetrics) -> Decimal | None:
    """Value the ranking is ordered and tied on, or ``None`` if not rankable."""
    if metric.kind == "overall":
        # An overall ranking only includes records with a non-zero average.
        return metrics.average if metrics.average > 0 else None
    if metric.term is None:
        return None
    return metrics.term_score(metric.term)


def secondary_value(metric: RankingMetric, metrics: DerivedMetrics) -> Decimal:
    if metric.kind == "overall":
        return metrics.latest_score
    return metrics.average


def candidate_sort_key(candidate: RankCandidate) -> tuple[Decimal, Decimal, str]:
    return (-candidate.primary, -candidate.secondary, candidate.name)


def sort_candidates(candidates: Iterable[RankCandidate]) -> list[RankCandidate]:
    """Order by primary desc, secondary desc, name asc (stable)."""
    return sorted(candidates, key=candidate_sort_key)
