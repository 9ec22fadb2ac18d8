from contextlib import contextmanager
from typing import Annotated, Iterator

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .config import resolve_db_path
from .errors import LeaderboardError
from .leaderboard import LeaderboardService, Page
from .log_config import setup_logging
from .storage import DuckDBStorage
from .storage.loader import load_records

app = Typer(help="Tie-aware cohort leaderboards over a DuckDB student store.")
console = Console()

YearOption = Annotated[
    str,
    Option("--year", "-y", help="Admission year of the cohort to rank."),
]
PageOption = Annotated[int, Option("--page", "-p", help="Page number (1-based).")]
LimitOption = Annotated[
    int | None,
    Option("--limit", "-l", help="Page size; defaults to COHORT_LEADERBOARD_PAGE_SIZE."),
]
DbPathOption = Annotated[
    str | None,
    Option("--db-path", help="DuckDB file; defaults to COHORT_LEADERBOARD_DB_PATH."),
]


@app.callback()
def main(
    log_level: Annotated[
        str | None,
        Option("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)."),
    ] = None,
) -> None:
    setup_logging(log_level)


@contextmanager
def open_service(db_path: str | None) -> Iterator[LeaderboardService]:
    try:
        storage = DuckDBStorage(
            resolve_db_path(db_path), read_only=True, initialize=False
        )
    except LeaderboardError as exc:
        _fail(exc)
    try:
        yield LeaderboardService(storage)
    except LeaderboardError as exc:
        _fail(exc)
    finally:
        storage.close()


def _fail(exc: LeaderboardError) -> None:
    console.print(f"[bold red]{type(exc).__name__}:[/] {exc}")
    raise Exit(code=1)


def render_page(page: Page, title: str) -> None:
    table = Table(title=title, title_justify="left")
    table.add_column("Rank", justify="right", style="bold")
    table.add_column("Seat")
    table.add_column("Name")
    table.add_column("Score", justify="right")
    table.add_column("Average", justify="right")
    table.add_column("Terms", justify="right")
    for entry in page.entries:
        table.add_row(
            str(entry.rank),
            entry.record.seat_number,
            entry.record.name,
            f"{entry.value:.2f}",
            f"{entry.metrics.average:.2f}",
            str(entry.metrics.term_count),
        )
    console.print(table)
    console.print(
        f"Page {page.page}/{max(page.total_pages, 1)} "
        f"- {page.total_records} ranked students"
    )


@app.command("import")
def import_records(
    path: Annotated[str, Argument(help="JSON file with an array of student records.")],
    db_path: DbPathOption = None,
) -> None:
    """Load student records from JSON into the store (upsert by seat number)."""
    try:
        records = load_records(path)
    except (OSError, ValueError) as exc:
        console.print(f"[bold red]Cannot load {path}:[/] {exc}")
        raise Exit(code=1)

    resolved_db_path = resolve_db_path(db_path)
    try:
        storage = DuckDBStorage(resolved_db_path)
    except LeaderboardError as exc:
        _fail(exc)
    try:
        written = storage.upsert_students(records)
    except LeaderboardError as exc:
        _fail(exc)
    finally:
        storage.close()
    console.print(
        Panel(
            f"Imported {written} student records into `{resolved_db_path}`",
            title="Import",
            title_align="left",
            border_style="bold green",
        )
    )


@app.command()
def overall(
    year: YearOption,
    page: PageOption = 1,
    limit: LimitOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Overall (cumulative average) leaderboard."""
    with open_service(db_path) as service:
        result = service.get_overall_ranking(year, page, limit)
    render_page(result, f"Overall leaderboard - admission year {result.admission_year}")


@app.command()
def term(
    term_number: Annotated[str, Argument(metavar="TERM", help="Term to rank by.")],
    year: YearOption,
    page: PageOption = 1,
    limit: LimitOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Leaderboard for one term."""
    with open_service(db_path) as service:
        result = service.get_term_ranking(year, term_number, page, limit)
    render_page(
        result,
        f"Term {result.term} leaderboard - admission year {result.admission_year}",
    )


@app.command()
def current(
    year: YearOption,
    page: PageOption = 1,
    limit: LimitOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Leaderboard for the cohort's most recent term."""
    with open_service(db_path) as service:
        result = service.get_current_term_ranking(year, page, limit)
    render_page(
        result,
        f"Current term ({result.term}) leaderboard - admission year {result.admission_year}",
    )


@app.command()
def top(
    year: YearOption,
    count: Annotated[int, Option("--count", "-n", help="How many (max 50).")] = 10,
    db_path: DbPathOption = None,
) -> None:
    """Top performers by overall average."""
    with open_service(db_path) as service:
        result = service.get_top_performers(year, count)
    render_page(result, f"Top {result.page_size} - admission year {result.admission_year}")


@app.command()
def search(
    year: YearOption,
    query: Annotated[
        str | None, Option("--query", "-q", help="Name or seat substring.")
    ] = None,
    min_average: Annotated[str | None, Option("--min-average")] = None,
    max_average: Annotated[str | None, Option("--max-average")] = None,
    page: PageOption = 1,
    limit: LimitOption = None,
    db_path: DbPathOption = None,
) -> None:
    """Search the overall leaderboard; ranks are cohort-wide."""
    with open_service(db_path) as service:
        result = service.search_students(
            year,
            query,
            min_average=min_average,
            max_average=max_average,
            page=page,
            page_size=limit,
        )
    render_page(result, f"Search results - admission year {result.admission_year}")


@app.command()
def years(db_path: DbPathOption = None) -> None:
    """List admission years present in the store."""
    with open_service(db_path) as service:
        available = service.get_available_years()
    console.print(", ".join(str(year) for year in available) or "No cohorts found")


@app.command()
def terms(year: YearOption, db_path: DbPathOption = None) -> None:
    """List terms recorded for a cohort."""
    with open_service(db_path) as service:
        available = service.get_available_terms(year)
    console.print(", ".join(str(item) for item in available) or "No terms found")


@app.command()
def stats(year: YearOption, db_path: DbPathOption = None) -> None:
    """Summary statistics of a cohort's averages."""
    with open_service(db_path) as service:
        summary = service.get_cohort_statistics(year)

    table = Table(title=f"Cohort {summary.admission_year}", title_justify="left")
    table.add_column("Statistic")
    table.add_column("Value", justify="right")
    table.add_row("Ranked students", str(summary.total_students))
    table.add_row("Mean average", f"{summary.average:.2f}")
    table.add_row("Highest", f"{summary.highest:.2f}")
    table.add_row("Lowest", f"{summary.lowest:.2f}")
    for threshold, count in summary.at_or_above.items():
        table.add_row(f"At or above {threshold}", str(count))
    for bucket in summary.distribution:
        table.add_row(f"Bucket {bucket.label}", str(bucket.count))
    console.print(table)


@app.command()
def serve(
    host: Annotated[str, Option("--host")] = "127.0.0.1",
    port: Annotated[int, Option("--port")] = 8000,
) -> None:
    """Run the HTTP API."""
    from .server import run_server

    run_server(host=host, port=port)
