"""
FastAPI server for cohort leaderboards.

Every route opens the student store read-only for the duration of one
request; nothing is shared between requests.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .config import resolve_db_path
from .errors import LeaderboardError, NotFoundError, ValidationError
from .leaderboard import (
    CohortStatistics,
    LeaderboardService,
    Page,
    parse_admission_year,
)
from .log_config import setup_logging
from .ranking.dense_rank import RankedEntry
from .storage import DuckDBStorage

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Cohort Leaderboard",
    description="Tie-aware, paginated rankings of student academic records",
)

METRIC_TYPES: dict[str, str] = {
    "overall": "overall_cgpa",
    "term": "semester_sgpa",
    "current": "current_semester_sgpa",
}


def get_leaderboard_service() -> Iterator[LeaderboardService]:
    """Yield a service over a read-only store; closed after the response."""
    storage = DuckDBStorage(resolve_db_path(), read_only=True, initialize=False)
    try:
        yield LeaderboardService(storage)
    finally:
        storage.close()


@app.exception_handler(LeaderboardError)
async def leaderboard_error_handler(request: Request, exc: LeaderboardError) -> JSONResponse:
    """Map engine errors to JSON bodies: 400 validation, 404 not found, 500 store."""
    if isinstance(exc, ValidationError):
        status_code = 400
    elif isinstance(exc, NotFoundError):
        status_code = 404
    else:
        logger.warning("Leaderboard request failed: %s", exc)
        status_code = 500
    return JSONResponse(
        {"success": False, "message": str(exc), "error": type(exc).__name__},
        status_code=status_code,
    )


def serialize_entry(entry: RankedEntry) -> dict[str, Any]:
    metrics = entry.metrics
    return {
        "rank": entry.rank,
        "seat_number": entry.record.seat_number,
        "name": entry.record.name,
        "admission_year": entry.record.admission_year,
        "score": float(entry.value),
        "average": float(metrics.average),
        "term_count": metrics.term_count,
        "latest_term": metrics.latest_term,
        "latest_score": float(metrics.latest_score),
        "terms": [
            {"term": item.term, "score": float(item.score)}
            for item in entry.record.terms
        ],
    }


def serialize_page(page: Page, **extra_meta: Any) -> dict[str, Any]:
    meta: dict[str, Any] = {
        "admission_year": page.admission_year,
        "type": METRIC_TYPES[page.metric],
        "strategy": page.strategy,
    }
    if page.term is not None:
        meta["term"] = page.term
    meta.update(extra_meta)
    return {
        "success": True,
        "data": [serialize_entry(entry) for entry in page.entries],
        "pagination": {
            "page": page.page,
            "limit": page.page_size,
            "total": page.total_records,
            "pages": page.total_pages,
            "has_next": page.has_next,
            "has_prev": page.has_prev,
        },
        "meta": meta,
    }


def serialize_statistics(stats: CohortStatistics) -> dict[str, Any]:
    return {
        "success": True,
        "admission_year": stats.admission_year,
        "statistics": {
            "total_students": stats.total_students,
            "average_cgpa": float(stats.average),
            "highest_cgpa": float(stats.highest),
            "lowest_cgpa": float(stats.lowest),
            "performance_breakdown": {
                f"above_{threshold}_cgpa": count
                for threshold, count in stats.at_or_above.items()
            },
        },
        "cgpa_distribution": [
            {"bucket": bucket.label, "count": bucket.count}
            for bucket in stats.distribution
        ],
    }


@app.get("/api/v1/leaderboard")
def overall_leaderboard(
    admission_year: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    service: LeaderboardService = Depends(get_leaderboard_service),
):
    """Overall CGPA leaderboard for one admission year."""
    result = service.get_overall_ranking(admission_year, page, limit)
    return serialize_page(result)


@app.get("/api/v1/leaderboard/current")
def current_term_leaderboard(
    admission_year: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    service: LeaderboardService = Depends(get_leaderboard_service),
):
    """Leaderboard for the cohort's most recent term."""
    result = service.get_current_term_ranking(admission_year, page, limit)
    return serialize_page(result, current_term=result.term)


@app.get("/api/v1/leaderboard/meta/years")
def available_years(service: LeaderboardService = Depends(get_leaderboard_service)):
    years = service.get_available_years()
    return {"success": True, "data": years, "count": len(years)}


@app.get("/api/v1/leaderboard/meta/terms")
def available_terms(
    admission_year: str | None = None,
    service: LeaderboardService = Depends(get_leaderboard_service),
):
    terms = service.get_available_terms(admission_year)
    return {
        "success": True,
        "data": terms,
        "count": len(terms),
        "admission_year": parse_admission_year(admission_year),
    }


@app.get("/api/v1/leaderboard/top")
def top_performers(
    admission_year: str | None = None,
    count: str | None = None,
    service: LeaderboardService = Depends(get_leaderboard_service),
):
    result = service.get_top_performers(admission_year, count)
    return serialize_page(result, top_count=result.page_size)


@app.get("/api/v1/leaderboard/search")
def search_leaderboard(
    admission_year: str | None = None,
    q: str | None = None,
    min_average: str | None = None,
    max_average: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    service: LeaderboardService = Depends(get_leaderboard_service),
):
    """Search the overall leaderboard by name or seat number."""
    result = service.search_students(
        admission_year,
        q,
        min_average=min_average,
        max_average=max_average,
        page=page,
        page_size=limit,
    )
    return serialize_page(
        result,
        query=q,
        min_average=min_average,
        max_average=max_average,
    )


@app.get("/api/v1/leaderboard/analytics")
def cohort_analytics(
    admission_year: str | None = None,
    service: LeaderboardService = Depends(get_leaderboard_service),
):
    stats = service.get_cohort_statistics(admission_year)
    return serialize_statistics(stats)


@app.get("/api/v1/leaderboard/{term}")
def term_leaderboard(
    term: str,
    admission_year: str | None = None,
    page: str | None = None,
    limit: str | None = None,
    service: LeaderboardService = Depends(get_leaderboard_service),
):
    """Leaderboard for one term of one admission year."""
    result = service.get_term_ranking(admission_year, term, page, limit)
    return serialize_page(result)


def run_server(host: str = "127.0.0.1", port: int = 8000):
    """Run the FastAPI server."""
    import uvicorn

    if not logging.getLogger().handlers:
        setup_logging()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
