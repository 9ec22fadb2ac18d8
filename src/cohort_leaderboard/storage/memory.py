"""
In-process storage backend over a fixed set of records.
"""

from __future__ import annotations

from typing import Iterable

from ..ranking.pipeline import derive_candidates
from ..ranking.sorter import sort_candidates
from .base import AggregateField, RankingFilter, StudentRecord


class InMemoryStorage:
    """Holds records in a list and answers store queries with the ranking stages."""

    def __init__(self, records: Iterable[StudentRecord] = ()) -> None:
        self._records: dict[str, StudentRecord] = {}
        for record in records:
            self.upsert_student(record)

    def upsert_student(self, record: StudentRecord) -> None:
        self._records[record.seat_number] = record

    def upsert_students(self, records: Iterable[StudentRecord]) -> int:
        written = 0
        for record in records:
            self.upsert_student(record)
            written += 1
        return written

    def delete_student(self, seat_number: str) -> bool:
        return self._records.pop(seat_number, None) is not None

    def close(self) -> None:
        return None

    def fetch_matching(
        self,
        flt: RankingFilter,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[StudentRecord]:
        matched = self._matching(flt)
        end = None if limit is None else offset + limit
        return matched[offset:end]

    def count_matching(self, flt: RankingFilter) -> int:
        return len(self._matching(flt))

    def max_of(self, field: AggregateField, flt: RankingFilter) -> int | None:
        values = self.distinct_values(field, flt)
        return max(values) if values else None

    def distinct_values(self, field: AggregateField, flt: RankingFilter) -> set[int]:
        records = self._matching(flt)
        if field == "admission_year":
            return {record.admission_year for record in records}
        if field == "term":
            return {entry.term for record in records for entry in record.terms}
        raise ValueError(f"Unsupported aggregate field: {field!r}")

    def _matching(self, flt: RankingFilter) -> list[StudentRecord]:
        # Seat order first so full-key ties come out the same way as in SQL.
        cohort = sorted(
            (
                record
                for record in self._records.values()
                if flt.admission_year is None
                or record.admission_year == flt.admission_year
            ),
            key=lambda record: record.seat_number,
        )
        if flt.metric is None:
            return cohort
        candidates = sort_candidates(derive_candidates(cohort, flt.metric))
        return [candidate.record for candidate in candidates]
