"""
Pure ranking stages: filter -> derive -> sort -> rank -> paginate.

Each stage works on plain sequences so it can be exercised without a store.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence, TypeVar

from ..storage.base import RankingMetric, StudentRecord
from .dense_rank import RankedEntry, assign_dense_ranks
from .metrics import derive_metrics
from .sorter import RankCandidate, primary_value, secondary_value, sort_candidates

T = TypeVar("T")


def derive_candidates(
    records: Iterable[StudentRecord], metric: RankingMetric
) -> list[RankCandidate]:
    """Derive metrics and drop records that have no primary value."""
    candidates: list[RankCandidate] = []
    for record in records:
        metrics = derive_metrics(record)
        if metrics is None:
            continue
        primary = primary_value(metric, metrics)
        if primary is None:
            continue
        candidates.append(
            RankCandidate(
                record=record,
                metrics=metrics,
                primary=primary,
                secondary=secondary_value(metric, metrics),
            )
        )
    return candidates


def rank_records(
    records: Iterable[StudentRecord], metric: RankingMetric
) -> list[RankedEntry]:
    """Run derive, sort and rank over ``records``, starting at rank 1."""
    return assign_dense_ranks(sort_candidates(derive_candidates(records, metric)))


def page_offset(page: int, page_size: int) -> int:
    return (page - 1) * page_size


def paginate(items: Sequence[T], *, page: int, page_size: int) -> list[T]:
    start = page_offset(page, page_size)
    return list(items[start : start + page_size])


def total_pages(total_records: int, page_size: int) -> int:
    return math.ceil(total_records / page_size) if page_size > 0 else 0
