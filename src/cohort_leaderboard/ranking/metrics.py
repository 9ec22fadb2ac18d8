"""
Per-record derived values: average, latest term, per-term score.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ..storage.base import StudentRecord, TermScore


TWO_PLACES = Decimal("0.01")


def round_score(value: Decimal) -> Decimal:
    """Round to two decimal places, halves away from zero."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DerivedMetrics:
    """Values computed from a record's term list. Never stored."""

    average: Decimal
    term_count: int
    latest_term: int
    latest_score: Decimal
    terms: tuple[TermScore, ...]

    def term_score(self, term: int) -> Decimal | None:
        for entry in self.terms:
            if entry.term == term:
                return entry.score
        return None


def latest_entry(record: StudentRecord) -> TermScore | None:
    """Entry with the highest term number.

    Duplicate term numbers resolve to the first such entry in store order.
    """
    if not record.terms:
        return None
    return max(record.terms, key=lambda entry: entry.term)


def term_score(record: StudentRecord, term: int) -> Decimal | None:
    for entry in record.terms:
        if entry.term == term:
            return entry.score
    return None


def average_score(record: StudentRecord) -> Decimal | None:
    if not record.terms:
        return None
    total = sum((entry.score for entry in record.terms), Decimal(0))
    return round_score(total / Decimal(len(record.terms)))


def derive_metrics(record: StudentRecord) -> DerivedMetrics | None:
    """Compute derived metrics, or ``None`` when the record has no terms."""
    latest = latest_entry(record)
    average = average_score(record)
    if latest is None or average is None:
        return None
    return DerivedMetrics(
        average=average,
        term_count=len(record.terms),
        latest_term=latest.term,
        latest_score=latest.score,
        terms=record.terms,
    )
