"""
Leaderboard orchestration: validated requests in, globally ranked pages out.

Page 1 is served from a window of ``page_size`` records fetched in ranking
order; any later page ranks the whole cohort and slices it. A window that
starts past offset 0 cannot see ties cut off before it, so it is never
ranked on its own. Later pages therefore cost O(N log N) per request in
cohort size N; nothing is cached between requests.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator, Literal, TypeAlias

from .config import resolve_max_page_size, resolve_page_size
from .errors import LeaderboardError, NotFoundError, StoreError, ValidationError
from .ranking.dense_rank import RankedEntry
from .ranking.metrics import round_score
from .ranking.pipeline import page_offset, paginate, rank_records, total_pages
from .storage.base import MetricKind, RankingFilter, RankingMetric, StudentStore

logger = logging.getLogger(__name__)

Strategy: TypeAlias = Literal["windowed", "full"]

MAX_TOP_PERFORMERS = 50
DEFAULT_TOP_PERFORMERS = 10

# (label, lower inclusive, upper exclusive); the last bucket includes 10.
DISTRIBUTION_BUCKETS: tuple[tuple[str, Decimal, Decimal], ...] = (
    ("0-6", Decimal(0), Decimal(6)),
    ("6-7", Decimal(6), Decimal(7)),
    ("7-8", Decimal(7), Decimal(8)),
    ("8-9", Decimal(8), Decimal(9)),
    ("9-10", Decimal(9), Decimal(10)),
)
PERFORMANCE_THRESHOLDS: tuple[int, ...] = (9, 8, 7)


@dataclass(frozen=True)
class Page:
    """One page of a ranking plus pagination metadata."""

    entries: tuple[RankedEntry, ...]
    page: int
    page_size: int
    total_records: int
    total_pages: int
    admission_year: int
    metric: MetricKind
    term: int | None = None
    strategy: Strategy = "full"

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


@dataclass(frozen=True)
class DistributionBucket:
    label: str
    count: int


@dataclass(frozen=True)
class CohortStatistics:
    """Summary of the averages of every ranked student in a cohort."""

    admission_year: int
    total_students: int
    average: Decimal
    highest: Decimal
    lowest: Decimal
    at_or_above: dict[int, int]
    distribution: tuple[DistributionBucket, ...]


def parse_admission_year(value: Any) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Admission year is required")
    return _parse_int(value, message="Admission year must be an integer")


def parse_term(value: Any) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError("Valid term number is required")
    term = _parse_int(value, message="Valid term number is required")
    if term < 1:
        raise ValidationError("Valid term number is required")
    return term


def parse_page(value: Any) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 1
    page = _parse_int(value, message="Page must be a positive integer")
    if page < 1:
        raise ValidationError("Page must be a positive integer")
    return page


def parse_score_bound(value: Any, *, label: str) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        bound = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{label} must be a number") from None
    if not bound.is_finite():
        raise ValidationError(f"{label} must be a number")
    return bound


def _parse_int(value: Any, *, message: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(message)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationError(message) from None


class LeaderboardService:
    """Ranking and cohort aggregate queries over a ``StudentStore``."""

    def __init__(
        self,
        store: StudentStore,
        *,
        default_page_size: int | None = None,
        max_page_size: int | None = None,
    ) -> None:
        self.store = store
        self.default_page_size = resolve_page_size(default_page_size)
        self.max_page_size = resolve_max_page_size(max_page_size)

    # -- rankings -------------------------------------------------------

    def get_overall_ranking(
        self, admission_year: Any, page: Any = 1, page_size: Any = None
    ) -> Page:
        """Rank a cohort by cumulative average (CGPA)."""
        year = parse_admission_year(admission_year)
        return self._rank_page(
            year,
            RankingMetric.overall(),
            parse_page(page),
            self._parse_page_size(page_size),
        )

    def get_term_ranking(
        self,
        admission_year: Any,
        term: Any,
        page: Any = 1,
        page_size: Any = None,
    ) -> Page:
        """Rank a cohort by the score of one term; students without it are left out."""
        year = parse_admission_year(admission_year)
        term_number = parse_term(term)
        return self._rank_page(
            year,
            RankingMetric.for_term(term_number),
            parse_page(page),
            self._parse_page_size(page_size),
        )

    def get_current_term_ranking(
        self, admission_year: Any, page: Any = 1, page_size: Any = None
    ) -> Page:
        """Rank a cohort by the cohort-wide most recent term.

        Raises:
            NotFoundError: the cohort has no term data at all.
        """
        year = parse_admission_year(admission_year)
        current_page = parse_page(page)
        size = self._parse_page_size(page_size)
        term = self.get_most_recent_term(year)
        return self._rank_page(year, RankingMetric.current(term), current_page, size)

    def get_top_performers(
        self, admission_year: Any, count: Any = DEFAULT_TOP_PERFORMERS
    ) -> Page:
        year = parse_admission_year(admission_year)
        if count is None or (isinstance(count, str) and not count.strip()):
            size = DEFAULT_TOP_PERFORMERS
        else:
            size = _parse_int(count, message="Count must be a positive integer")
            if size < 1:
                raise ValidationError("Count must be a positive integer")
        return self._rank_page(
            year, RankingMetric.overall(), 1, min(size, MAX_TOP_PERFORMERS)
        )

    def search_students(
        self,
        admission_year: Any,
        query: str | None = None,
        *,
        min_average: Any = None,
        max_average: Any = None,
        page: Any = 1,
        page_size: Any = None,
    ) -> Page:
        """
        Filter the overall ranking by name/seat substring and average range.

        Entries keep their rank in the full cohort ranking; pagination
        applies to the filtered list.
        """
        year = parse_admission_year(admission_year)
        current_page = parse_page(page)
        size = self._parse_page_size(page_size)
        low = parse_score_bound(min_average, label="Minimum average")
        high = parse_score_bound(max_average, label="Maximum average")
        if low is not None and high is not None and low > high:
            raise ValidationError("Minimum average cannot exceed maximum average")

        metric = RankingMetric.overall()
        with self._store_call("search"):
            records = self.store.fetch_matching(
                RankingFilter(admission_year=year, metric=metric)
            )
        ranked = rank_records(records, metric)

        needle = (query or "").strip().casefold()
        matched = [
            entry
            for entry in ranked
            if (
                not needle
                or needle in entry.record.name.casefold()
                or needle in entry.record.seat_number.casefold()
            )
            and (low is None or entry.value >= low)
            and (high is None or entry.value <= high)
        ]
        return Page(
            entries=tuple(paginate(matched, page=current_page, page_size=size)),
            page=current_page,
            page_size=size,
            total_records=len(matched),
            total_pages=total_pages(len(matched), size),
            admission_year=year,
            metric=metric.kind,
            strategy="full",
        )

    # -- cohort aggregates ----------------------------------------------

    def get_available_years(self) -> list[int]:
        """Distinct admission years, most recent first."""
        with self._store_call("years"):
            years = self.store.distinct_values("admission_year", RankingFilter())
        return sorted(years, reverse=True)

    def get_available_terms(self, admission_year: Any) -> list[int]:
        """Distinct term numbers recorded anywhere in the cohort, ascending."""
        year = parse_admission_year(admission_year)
        with self._store_call("terms"):
            terms = self.store.distinct_values(
                "term", RankingFilter(admission_year=year)
            )
        return sorted(terms)

    def get_most_recent_term(self, admission_year: Any) -> int:
        year = parse_admission_year(admission_year)
        with self._store_call("most recent term"):
            term = self.store.max_of("term", RankingFilter(admission_year=year))
        if term is None:
            raise NotFoundError(
                f"No term data found for admission year {year}"
            )
        return term

    def get_cohort_statistics(self, admission_year: Any) -> CohortStatistics:
        year = parse_admission_year(admission_year)
        metric = RankingMetric.overall()
        with self._store_call("statistics"):
            records = self.store.fetch_matching(
                RankingFilter(admission_year=year, metric=metric)
            )
        averages = [entry.value for entry in rank_records(records, metric)]

        counts = {label: 0 for label, _, _ in DISTRIBUTION_BUCKETS}
        other = 0
        for value in averages:
            label = _bucket_label(value)
            if label is None:
                other += 1
            else:
                counts[label] += 1
        buckets = [DistributionBucket(label=label, count=counts[label]) for label in counts]
        if other:
            buckets.append(DistributionBucket(label="other", count=other))

        zero = Decimal("0.00")
        return CohortStatistics(
            admission_year=year,
            total_students=len(averages),
            average=round_score(sum(averages, Decimal(0)) / len(averages))
            if averages
            else zero,
            highest=max(averages, default=zero),
            lowest=min(averages, default=zero),
            at_or_above={
                threshold: sum(1 for value in averages if value >= threshold)
                for threshold in PERFORMANCE_THRESHOLDS
            },
            distribution=tuple(buckets),
        )

    # -- internals ------------------------------------------------------

    def _parse_page_size(self, value: Any) -> int:
        if value is None or (isinstance(value, str) and not value.strip()):
            return min(self.default_page_size, self.max_page_size)
        size = _parse_int(value, message="Page size must be a positive integer")
        if size < 1:
            raise ValidationError("Page size must be a positive integer")
        return min(size, self.max_page_size)

    def _rank_page(
        self, year: int, metric: RankingMetric, page: int, page_size: int
    ) -> Page:
        flt = RankingFilter(admission_year=year, metric=metric)
        offset = page_offset(page, page_size)
        strategy: Strategy

        windowed = offset == 0
        with self._store_call("ranking"):
            if windowed:
                records = self.store.fetch_matching(flt, limit=page_size)
            else:
                records = self.store.fetch_matching(flt)
            total = self.store.count_matching(flt)

        if windowed:
            entries = rank_records(records, metric)
            strategy = "windowed"
        else:
            entries = paginate(
                rank_records(records, metric), page=page, page_size=page_size
            )
            strategy = "full"

        logger.debug(
            "Ranked %s page %d for year %d using %s strategy (%d of %d records)",
            metric.kind,
            page,
            year,
            strategy,
            len(entries),
            total,
        )
        return Page(
            entries=tuple(entries),
            page=page,
            page_size=page_size,
            total_records=total,
            total_pages=total_pages(total, page_size),
            admission_year=year,
            metric=metric.kind,
            term=metric.term,
            strategy=strategy,
        )

    @contextmanager
    def _store_call(self, operation: str) -> Iterator[None]:
        try:
            yield
        except LeaderboardError:
            raise
        except Exception as exc:
            logger.warning("Store %s query failed: %s", operation, exc)
            raise StoreError(f"Store {operation} query failed: {exc}") from exc


def _bucket_label(value: Decimal) -> str | None:
    last = len(DISTRIBUTION_BUCKETS) - 1
    for index, (label, lower, upper) in enumerate(DISTRIBUTION_BUCKETS):
        if lower <= value < upper or (index == last and value == upper):
            return label
    return None
