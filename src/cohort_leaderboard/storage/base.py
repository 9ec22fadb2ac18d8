"""
Storage interfaces and data models for student records.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal, Protocol, TypeAlias


MetricKind: TypeAlias = Literal["overall", "term", "current"]
AggregateField: TypeAlias = Literal["admission_year", "term"]


@dataclass(frozen=True)
class TermScore:
    """Score recorded for one academic term."""

    term: int
    score: Decimal


@dataclass(frozen=True)
class StudentRecord:
    """A student's academic record as held by the store."""

    seat_number: str
    name: str
    admission_year: int
    terms: tuple[TermScore, ...] = ()


@dataclass(frozen=True)
class RankingMetric:
    """Which derived value a ranking is ordered by.

    ``term`` and ``current`` rankings carry the term number they rank on;
    for ``current`` it is the cohort-wide most recent term.
    """

    kind: MetricKind
    term: int | None = None

    def __post_init__(self) -> None:
        if self.kind == "overall" and self.term is not None:
            raise ValueError("Overall ranking does not take a term.")
        if self.kind != "overall" and self.term is None:
            raise ValueError(f"{self.kind!r} ranking requires a term.")

    @classmethod
    def overall(cls) -> RankingMetric:
        return cls(kind="overall")

    @classmethod
    def for_term(cls, term: int) -> RankingMetric:
        return cls(kind="term", term=term)

    @classmethod
    def current(cls, term: int) -> RankingMetric:
        return cls(kind="current", term=term)

    @property
    def is_term_scoped(self) -> bool:
        return self.term is not None


@dataclass(frozen=True)
class RankingFilter:
    """Inclusion predicate shared by fetch and count queries.

    ``metric=None`` selects every record of the cohort; otherwise only
    records that have the metric's primary value are selected.
    """

    admission_year: int | None = None
    metric: RankingMetric | None = None


class StudentStore(Protocol):
    """Read operations the leaderboard engine needs from a record store."""

    def fetch_matching(
        self,
        flt: RankingFilter,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[StudentRecord]:
        """Return matching records, in ranking order when ``flt.metric`` is set."""

    def count_matching(self, flt: RankingFilter) -> int:
        """Count the records ``fetch_matching`` would return without a limit."""

    def max_of(self, field: AggregateField, flt: RankingFilter) -> int | None:
        """Return the maximum value of ``field`` over matching records."""

    def distinct_values(self, field: AggregateField, flt: RankingFilter) -> set[int]:
        """Return the distinct values of ``field`` over matching records."""
