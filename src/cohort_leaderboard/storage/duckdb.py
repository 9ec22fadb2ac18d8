"""
DuckDB storage backend for student records.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Iterator

import duckdb

from ..errors import StoreError
from .base import AggregateField, RankingFilter, StudentRecord, TermScore

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

# Scores are compared as integer hundredths so the SQL average rounds
# exactly like the Python deriver (half away from zero, two places).
_DERIVED_CTE = """
WITH scored AS (
    SELECT
        t.seat_number,
        t.term,
        CAST(t.score * 100 AS BIGINT) AS cents,
        ROW_NUMBER() OVER (
            PARTITION BY t.seat_number ORDER BY t.term DESC, t.position ASC
        ) AS latest_order,
        ROW_NUMBER() OVER (
            PARTITION BY t.seat_number, t.term ORDER BY t.position ASC
        ) AS term_order
    FROM term_scores t
),
derived AS (
    SELECT
        s.seat_number,
        s.name,
        s.admission_year,
        COUNT(sc.cents) AS term_count,
        CASE
            WHEN COUNT(sc.cents) > 0
            THEN (2 * SUM(sc.cents) + COUNT(sc.cents)) // (2 * COUNT(sc.cents))
        END AS average_cents,
        MAX(CASE WHEN sc.latest_order = 1 THEN sc.cents END) AS latest_cents,
        {term_column} AS term_cents
    FROM students s
    LEFT JOIN scored sc ON sc.seat_number = s.seat_number
    {where_clause}
    GROUP BY s.seat_number, s.name, s.admission_year
)
"""

_AGGREGATE_COLUMNS: dict[str, str] = {
    "admission_year": "d.admission_year",
    "term": "t.term",
}


class DuckDBStorage:
    """DuckDB-backed persistence for student records and term scores."""

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        if db_path == MEMORY_DB:
            self.db_path = MEMORY_DB
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        try:
            self._conn = duckdb.connect(self.db_path, read_only=read_only)
        except duckdb.Error as exc:
            raise StoreError(f"Cannot open student store {self.db_path}: {exc}") from exc
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()

    def initialize(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS students (
                seat_number VARCHAR PRIMARY KEY,
                name VARCHAR NOT NULL,
                admission_year INTEGER NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS term_scores (
                seat_number VARCHAR NOT NULL,
                position INTEGER NOT NULL,
                term INTEGER NOT NULL,
                score DECIMAL(5, 2) NOT NULL
            );
            """
        )

    # -- writes ---------------------------------------------------------

    def upsert_student(self, record: StudentRecord) -> None:
        """Insert or replace a student and their full term list."""
        self.upsert_students([record])

    def upsert_students(self, records: Iterable[StudentRecord]) -> int:
        """Write a batch in one transaction; a failing record rolls back the batch."""
        written = 0
        with self._store_errors("upsert"):
            self._conn.begin()
            try:
                for record in records:
                    self._write_student(record)
                    written += 1
            except Exception:
                self._conn.rollback()
                raise
            self._conn.commit()
        return written

    def _write_student(self, record: StudentRecord) -> None:
        # Scores are replaced wholesale; positions keep the input order.
        self._conn.execute(
            "DELETE FROM term_scores WHERE seat_number = ?", [record.seat_number]
        )
        self._conn.execute(
            """
            INSERT INTO students (seat_number, name, admission_year)
            VALUES (?, ?, ?)
            ON CONFLICT(seat_number) DO UPDATE SET
                name = excluded.name,
                admission_year = excluded.admission_year,
                updated_at = now()
            """,
            [record.seat_number, record.name, record.admission_year],
        )
        if record.terms:
            self._conn.executemany(
                """
                INSERT INTO term_scores (seat_number, position, term, score)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (record.seat_number, position, entry.term, entry.score)
                    for position, entry in enumerate(record.terms)
                ],
            )

    def delete_student(self, seat_number: str) -> bool:
        with self._store_errors("delete"):
            self._conn.execute(
                "DELETE FROM term_scores WHERE seat_number = ?", [seat_number]
            )
            row = self._conn.execute(
                "DELETE FROM students WHERE seat_number = ? RETURNING seat_number",
                [seat_number],
            ).fetchone()
        return row is not None

    # -- reads ----------------------------------------------------------

    def fetch_matching(
        self,
        flt: RankingFilter,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[StudentRecord]:
        cte, params = self._derived_cte(flt)
        predicate = self._predicate(flt)
        order_by = self._order_by(flt)

        window = ""
        if limit is not None:
            window += " LIMIT ?"
            params.append(int(limit))
        if offset:
            window += " OFFSET ?"
            params.append(int(offset))

        sql = f"""
            {cte},
            selected AS (
                SELECT
                    seat_number,
                    name,
                    admission_year,
                    ROW_NUMBER() OVER (ORDER BY {order_by}) AS ordinal
                FROM derived
                WHERE {predicate}
                ORDER BY {order_by}
                {window}
            )
            SELECT p.ordinal, p.seat_number, p.name, p.admission_year, t.term, t.score
            FROM selected p
            LEFT JOIN term_scores t ON t.seat_number = p.seat_number
            ORDER BY p.ordinal ASC, t.position ASC
        """
        with self._store_errors("fetch"):
            rows = self._conn.execute(sql, params).fetchall()
        return self._rows_to_records(rows)

    def count_matching(self, flt: RankingFilter) -> int:
        cte, params = self._derived_cte(flt)
        sql = f"{cte} SELECT COUNT(*) FROM derived WHERE {self._predicate(flt)}"
        with self._store_errors("count"):
            row = self._conn.execute(sql, params).fetchone()
        return int(row[0]) if row else 0

    def max_of(self, field: AggregateField, flt: RankingFilter) -> int | None:
        sql, params = self._aggregate_sql(f"MAX({_column(field)})", field, flt)
        with self._store_errors("max"):
            row = self._conn.execute(sql, params).fetchone()
        if row is None or row[0] is None:
            return None
        return int(row[0])

    def distinct_values(self, field: AggregateField, flt: RankingFilter) -> set[int]:
        column = _column(field)
        sql, params = self._aggregate_sql(f"DISTINCT {column}", field, flt)
        sql += f" AND {column} IS NOT NULL"
        with self._store_errors("distinct"):
            rows = self._conn.execute(sql, params).fetchall()
        return {int(row[0]) for row in rows}

    # -- helpers --------------------------------------------------------

    @contextmanager
    def _store_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except duckdb.Error as exc:
            logger.warning("Student store %s failed: %s", operation, exc)
            raise StoreError(f"Student store {operation} failed: {exc}") from exc

    @staticmethod
    def _derived_cte(flt: RankingFilter) -> tuple[str, list[Any]]:
        params: list[Any] = []
        term_column = "NULL"
        metric = flt.metric
        if metric is not None and metric.term is not None:
            term_column = (
                "MAX(CASE WHEN sc.term = ? AND sc.term_order = 1 THEN sc.cents END)"
            )
            params.append(metric.term)

        where_clause = ""
        if flt.admission_year is not None:
            where_clause = "WHERE s.admission_year = ?"
            params.append(flt.admission_year)

        cte = _DERIVED_CTE.format(term_column=term_column, where_clause=where_clause)
        return cte, params

    @staticmethod
    def _predicate(flt: RankingFilter) -> str:
        metric = flt.metric
        if metric is None:
            return "TRUE"
        if metric.kind == "overall":
            return "average_cents > 0"
        return "term_cents IS NOT NULL"

    @staticmethod
    def _order_by(flt: RankingFilter) -> str:
        metric = flt.metric
        if metric is None:
            return "seat_number ASC"
        if metric.kind == "overall":
            primary, secondary = "average_cents", "latest_cents"
        else:
            primary, secondary = "term_cents", "average_cents"
        return f"{primary} DESC, {secondary} DESC, name ASC, seat_number ASC"

    def _aggregate_sql(
        self, select_expr: str, field: AggregateField, flt: RankingFilter
    ) -> tuple[str, list[Any]]:
        cte, params = self._derived_cte(flt)
        source = "derived d"
        if field == "term":
            source += " JOIN term_scores t ON t.seat_number = d.seat_number"
        sql = f"{cte} SELECT {select_expr} FROM {source} WHERE {self._predicate(flt)}"
        return sql, params

    @staticmethod
    def _rows_to_records(rows: list[tuple[Any, ...]]) -> list[StudentRecord]:
        records: list[StudentRecord] = []
        current_ordinal: int | None = None
        header: tuple[str, str, int] | None = None
        terms: list[TermScore] = []

        for ordinal, seat_number, name, admission_year, term, score in rows:
            if ordinal != current_ordinal:
                if header is not None:
                    records.append(StudentRecord(*header, terms=tuple(terms)))
                current_ordinal = ordinal
                header = (str(seat_number), str(name), int(admission_year))
                terms = []
            if term is not None:
                terms.append(TermScore(term=int(term), score=Decimal(score)))

        if header is not None:
            records.append(StudentRecord(*header, terms=tuple(terms)))
        return records


def _column(field: AggregateField) -> str:
    try:
        return _AGGREGATE_COLUMNS[field]
    except KeyError:
        raise ValueError(f"Unsupported aggregate field: {field!r}") from None
