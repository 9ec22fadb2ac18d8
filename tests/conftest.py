from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator

import pytest

from cohort_leaderboard.storage import DuckDBStorage, StudentRecord, TermScore
from cohort_leaderboard.storage.memory import InMemoryStorage

RecordFactory = Callable[..., StudentRecord]


def build_record(
    seat_number: str,
    name: str,
    admission_year: int,
    scores: list[tuple[int, str]],
) -> StudentRecord:
    return StudentRecord(
        seat_number=seat_number,
        name=name,
        admission_year=admission_year,
        terms=tuple(TermScore(term=term, score=Decimal(score)) for term, score in scores),
    )


@pytest.fixture()
def make_record() -> RecordFactory:
    return build_record


@pytest.fixture()
def cohort_records() -> list[StudentRecord]:
    """
    2022 cohort used across tests.

    Overall: Bala 9.00 (latest 9.50), Asha 9.00 (latest 9.00), Chen 8.50,
    Gita 8.17, Dev 7.00. Esha has no terms and Farid averages 0.00, so
    neither is ranked overall. The cohort's most recent term is 3.
    """
    return [
        build_record("S01", "Asha", 2022, [(1, "9.00"), (2, "9.00")]),
        build_record("S02", "Bala", 2022, [(1, "8.50"), (2, "9.50")]),
        build_record("S03", "Chen", 2022, [(1, "8.00"), (2, "9.00")]),
        build_record("S04", "Dev", 2022, [(1, "7.00")]),
        build_record("S05", "Esha", 2022, []),
        build_record("S06", "Farid", 2022, [(1, "0.00"), (2, "0.00")]),
        build_record("S07", "Gita", 2022, [(1, "8.00"), (2, "9.00"), (3, "7.50")]),
        build_record("S10", "Hari", 2021, [(1, "6.00")]),
    ]


@pytest.fixture()
def duckdb_path(tmp_path: Path, cohort_records: list[StudentRecord]) -> str:
    """A DuckDB file holding the cohort, with the writer already closed."""
    db_path = str(tmp_path / "students.duckdb")
    storage = DuckDBStorage(db_path)
    storage.upsert_students(cohort_records)
    storage.close()
    return db_path


@pytest.fixture(params=["memory", "duckdb"])
def store(
    request: pytest.FixtureRequest,
    tmp_path: Path,
    cohort_records: list[StudentRecord],
) -> Iterator[InMemoryStorage | DuckDBStorage]:
    if request.param == "memory":
        yield InMemoryStorage(cohort_records)
        return
    storage = DuckDBStorage(str(tmp_path / "students.duckdb"))
    storage.upsert_students(cohort_records)
    yield storage
    storage.close()
