"""
Dense rank assignment over a sorted candidate sequence.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from ..storage.base import StudentRecord
from .metrics import DerivedMetrics
from .sorter import RankCandidate


@dataclass(frozen=True)
class RankedEntry:
    """A record with its selected metric value and rank within one request."""

    record: StudentRecord
    metrics: DerivedMetrics
    value: Decimal
    rank: int


def assign_dense_ranks(
    candidates: Sequence[RankCandidate], *, start_rank: int = 1
) -> list[RankedEntry]:
    """
    Assign dense ranks to an already sorted sequence.

    Ties are decided on the primary value alone with exact equality, so
    9, 9, 8 ranks as 1, 1, 2.
    """
    ranked: list[RankedEntry] = []
    current_rank = start_rank
    previous: Decimal | None = None

    for index, candidate in enumerate(candidates):
        if index > 0 and candidate.primary != previous:
            current_rank += 1
        ranked.append(
            RankedEntry(
                record=candidate.record,
                metrics=candidate.metrics,
                value=candidate.primary,
                rank=current_rank,
            )
        )
        previous = candidate.primary

    return ranked
