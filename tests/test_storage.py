"""Tests for the DuckDB and in-memory student stores."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest

from cohort_leaderboard.errors import StoreError
from cohort_leaderboard.storage import (
    DuckDBStorage,
    RankingFilter,
    RankingMetric,
    StudentRecord,
    TermScore,
)
from cohort_leaderboard.storage.loader import load_records, record_to_dict
from cohort_leaderboard.storage.memory import InMemoryStorage


def _seats(records) -> list[str]:
    return [record.seat_number for record in records]


# ---------------------------------------------------------------------------
# Store contract (both backends)
# ---------------------------------------------------------------------------


def test_fetch_without_metric_returns_whole_cohort(store) -> None:
    records = store.fetch_matching(RankingFilter(admission_year=2022))

    assert _seats(records) == ["S01", "S02", "S03", "S04", "S05", "S06", "S07"]
    assert store.count_matching(RankingFilter(admission_year=2022)) == 7


def test_fetch_overall_returns_ranking_order(store) -> None:
    flt = RankingFilter(admission_year=2022, metric=RankingMetric.overall())

    records = store.fetch_matching(flt)

    assert _seats(records) == ["S02", "S01", "S03", "S07", "S04"]
    assert store.count_matching(flt) == 5


def test_fetch_term_keeps_zero_scores(store) -> None:
    flt = RankingFilter(admission_year=2022, metric=RankingMetric.for_term(2))

    records = store.fetch_matching(flt)

    assert _seats(records) == ["S02", "S01", "S03", "S07", "S06"]
    assert store.count_matching(flt) == 5


def test_fetch_window_respects_offset_and_limit(store) -> None:
    flt = RankingFilter(admission_year=2022, metric=RankingMetric.overall())

    assert _seats(store.fetch_matching(flt, limit=2)) == ["S02", "S01"]
    assert _seats(store.fetch_matching(flt, offset=2, limit=2)) == ["S03", "S07"]
    assert store.fetch_matching(flt, offset=10, limit=2) == []


def test_fetched_records_keep_term_order(store) -> None:
    flt = RankingFilter(admission_year=2022, metric=RankingMetric.for_term(3))

    [record] = store.fetch_matching(flt)

    assert record.name == "Gita"
    assert [entry.term for entry in record.terms] == [1, 2, 3]
    assert [entry.score for entry in record.terms] == [
        Decimal("8.00"),
        Decimal("9.00"),
        Decimal("7.50"),
    ]


def test_aggregates(store) -> None:
    cohort = RankingFilter(admission_year=2022)

    assert store.max_of("term", cohort) == 3
    assert store.distinct_values("term", cohort) == {1, 2, 3}
    assert store.distinct_values("admission_year", RankingFilter()) == {2021, 2022}
    assert store.max_of("term", RankingFilter(admission_year=1999)) is None
    assert store.distinct_values("term", RankingFilter(admission_year=1999)) == set()


def test_upsert_replaces_existing_record(store, make_record) -> None:
    store.upsert_student(make_record("S04", "Dev", 2022, [(1, "9.90"), (2, "9.90")]))
    flt = RankingFilter(admission_year=2022, metric=RankingMetric.overall())

    records = store.fetch_matching(flt, limit=1)

    assert _seats(records) == ["S04"]
    assert len(records[0].terms) == 2
    assert store.count_matching(RankingFilter(admission_year=2022)) == 7


def test_delete_student(store) -> None:
    assert store.delete_student("S07") is True
    assert store.delete_student("S07") is False
    assert store.max_of("term", RankingFilter(admission_year=2022)) == 2


def test_duplicate_latest_term_uses_first_entry(store, make_record) -> None:
    store.upsert_student(
        make_record("S20", "Ira", 2030, [(1, "5.00"), (2, "6.00"), (2, "9.00")])
    )
    store.upsert_student(make_record("S21", "Jon", 2030, [(1, "5.00"), (2, "7.00")]))

    term_records = store.fetch_matching(
        RankingFilter(admission_year=2030, metric=RankingMetric.for_term(2))
    )

    # Ira's term 2 score is 6.00 (first entry), so Jon's 7.00 is ahead.
    assert _seats(term_records) == ["S21", "S20"]


# ---------------------------------------------------------------------------
# DuckDB specifics
# ---------------------------------------------------------------------------


def test_duckdb_persists_between_connections(duckdb_path: str) -> None:
    storage = DuckDBStorage(duckdb_path, read_only=True, initialize=False)
    try:
        assert storage.count_matching(RankingFilter()) == 8
    finally:
        storage.close()


def test_duckdb_in_memory_database(cohort_records) -> None:
    storage = DuckDBStorage(":memory:")
    try:
        assert storage.upsert_students(cohort_records) == len(cohort_records)
        assert storage.count_matching(RankingFilter(admission_year=2021)) == 1
    finally:
        storage.close()


def test_duckdb_averages_round_half_up() -> None:
    storage = DuckDBStorage(":memory:")
    try:
        storage.upsert_students(
            [
                StudentRecord(
                    "A",
                    "Ana",
                    2022,
                    (TermScore(1, Decimal("8.00")), TermScore(2, Decimal("8.25"))),
                ),
                StudentRecord("B", "Ben", 2022, (TermScore(1, Decimal("8.13")),)),
                StudentRecord("C", "Cal", 2022, (TermScore(1, Decimal("8.12")),)),
            ]
        )
        flt = RankingFilter(admission_year=2022, metric=RankingMetric.overall())

        # Ana averages 8.125 -> 8.13, tying Ben; her latest score is higher.
        assert _seats(storage.fetch_matching(flt)) == ["A", "B", "C"]
    finally:
        storage.close()


def test_duckdb_failed_batch_writes_nothing(duckdb_path: str, make_record) -> None:
    storage = DuckDBStorage(duckdb_path)
    try:
        with pytest.raises(StoreError):
            storage.upsert_students(
                [
                    make_record("S30", "Kavya", 2022, [(1, "9.00")]),
                    make_record("S01", "Asha", 2022, [(1, "1000.00")]),
                ]
            )

        cohort = storage.fetch_matching(RankingFilter(admission_year=2022))
        asha = next(record for record in cohort if record.seat_number == "S01")
        assert "S30" not in _seats(cohort)
        assert len(cohort) == 7
        assert [entry.score for entry in asha.terms] == [
            Decimal("9.00"),
            Decimal("9.00"),
        ]
    finally:
        storage.close()


def test_duckdb_closed_connection_raises_store_error(tmp_path: Path) -> None:
    storage = DuckDBStorage(str(tmp_path / "closed.duckdb"))
    storage.close()

    with pytest.raises(StoreError):
        storage.count_matching(RankingFilter(admission_year=2022))


def test_duckdb_read_only_missing_file_raises_store_error(tmp_path: Path) -> None:
    with pytest.raises(StoreError):
        DuckDBStorage(str(tmp_path / "missing.duckdb"), read_only=True)


def test_in_memory_rejects_unknown_aggregate_field() -> None:
    with pytest.raises(ValueError):
        InMemoryStorage().distinct_values("name", RankingFilter())  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# JSON loading
# ---------------------------------------------------------------------------


def test_load_records_accepts_sgpa_export(tmp_path: Path) -> None:
    path = tmp_path / "students.json"
    path.write_text(
        json.dumps(
            [
                {
                    "seat_number": 1001,
                    "name": " Asha ",
                    "admission_year": 2022,
                    "sgpa_list": [
                        {"semester": 1, "sgpa": 8.5},
                        {"semester": 2, "sgpa": "9.10"},
                    ],
                },
                {
                    "seat_number": "S2",
                    "name": "Bala",
                    "admission_year": "2022",
                    "terms": {"term": 1, "score": 7},
                },
            ]
        ),
        encoding="utf-8",
    )

    first, second = load_records(path)

    assert first.seat_number == "1001"
    assert first.name == "Asha"
    assert [entry.score for entry in first.terms] == [Decimal("8.5"), Decimal("9.10")]
    assert second.admission_year == 2022
    assert [(entry.term, entry.score) for entry in second.terms] == [(1, Decimal(7))]


def test_load_records_accepts_wrapped_export(tmp_path: Path, cohort_records) -> None:
    path = tmp_path / "students.json"
    path.write_text(
        json.dumps({"students": [record_to_dict(r) for r in cohort_records]}),
        encoding="utf-8",
    )

    loaded = load_records(path)

    assert _seats(loaded) == _seats(cohort_records)
    assert loaded[6].terms == cohort_records[6].terms


def test_load_records_rejects_negative_scores(tmp_path: Path) -> None:
    path = tmp_path / "bad.json"
    path.write_text(
        json.dumps(
            [
                {
                    "seat_number": "S1",
                    "name": "A",
                    "admission_year": 2022,
                    "sgpa_list": [{"semester": 1, "sgpa": -1}],
                }
            ]
        ),
        encoding="utf-8",
    )

    with pytest.raises(ValueError):
        load_records(path)
