import asyncio
from datetime import timedelta
from typing import Annotated

from typer import Argument, Exit, Option, Typer
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import Settings, configure_logging
from .directory import DirectoryService
from .errors import DatabaseLockedError, ValidationError
from .jobs import DuckDBJobQueue, JobState
from .services import Services, build_services
from .storage import DuckDBRecordStore

app = Typer(help="Yellow Book AI search and embedding worker.")

DbPathOption = Annotated[
    str | None,
    Option("--db-path", help="DuckDB file (defaults to YELLOWBOOK_DB_PATH)."),
]


def _database_locked(exc: DatabaseLockedError) -> Exit:
    Console().print(
        f"[bold red]{escape(str(exc))}.[/]\n"
        "Only one process may open the database for writing. Stop `yellowbook serve` "
        "(it runs the embedding worker too) or use the HTTP API instead."
    )
    return Exit(code=1)


def _load_services(db_path: str | None) -> Services:
    settings = Settings.from_env(db_path)
    configure_logging(settings.log_level)
    try:
        return build_services(settings)
    except DatabaseLockedError as exc:
        raise _database_locked(exc)


def _open_queue(db_path: str | None) -> DuckDBJobQueue:
    settings = Settings.from_env(db_path)
    configure_logging(settings.log_level)
    try:
        return DuckDBJobQueue(settings.db_path)
    except DatabaseLockedError as exc:
        raise _database_locked(exc)


async def run_search(services: Services, question: str, city: str | None) -> None:
    console = Console()
    with console.status(status="Searching the directory..."):
        result = await services.search.search(question, city)

    console.print(
        Panel(
            Markdown(result.answer),
            title_align="left",
            title="Answer (cached)" if result.cached else "Answer",
            border_style="bold green",
        )
    )
    if not result.businesses:
        return
    table = Table(title="Businesses")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("City")
    table.add_column("Relevance", justify="right")
    table.add_column("Matched by")
    for index, hit in enumerate(result.businesses, start=1):
        table.add_row(
            str(index),
            hit.name,
            hit.city,
            f"{hit.relevance_score:.3f}",
            hit.matched_by,
        )
    console.print(table)


@app.command()
def search(
    question: Annotated[str, Argument(help="Natural-language question.")],
    city: Annotated[
        str | None, Option("--city", "-c", help="Only consider businesses in this city.")
    ] = None,
    db_path: DbPathOption = None,
) -> None:
    """Ask a question about the directory."""
    services = _load_services(db_path)
    try:
        asyncio.run(run_search(services, question, city))
    except ValidationError as exc:
        Console().print(f"[bold red]{escape(str(exc))}[/]")
        raise Exit(code=1)
    finally:
        services.close()


@app.command()
def worker(
    concurrency: Annotated[
        int | None, Option("--concurrency", help="Jobs processed at the same time.")
    ] = None,
    once: Annotated[
        bool, Option("--once", help="Process currently due jobs, then exit.")
    ] = False,
    db_path: DbPathOption = None,
) -> None:
    """Run the embedding worker."""
    services = _load_services(db_path)
    if concurrency is not None:
        services.worker.concurrency = max(concurrency, 1)
    console = Console()
    try:
        if once:
            outcomes = asyncio.run(services.worker.run_once())
            for outcome in outcomes:
                color = "green" if outcome.state is JobState.COMPLETED else "yellow"
                if outcome.state is JobState.DEAD_LETTERED:
                    color = "red"
                console.print(
                    f"[{color}]{outcome.job_id}[/] {outcome.state.value} "
                    f"(attempt {outcome.attempt})"
                    + (f": {escape(outcome.error)}" if outcome.error else "")
                )
            console.print(f"Processed {len(outcomes)} job run(s).")
        else:
            console.print("[bold cyan]Embedding worker running, press Ctrl+C to stop.[/]")
            asyncio.run(services.worker.run())
    except KeyboardInterrupt:
        console.print("Worker stopped.")
    finally:
        services.close()


@app.command()
def jobs(
    state: Annotated[
        str | None,
        Option("--state", help="Filter by state, e.g. dead_lettered."),
    ] = None,
    limit: Annotated[int, Option("--limit", help="Maximum jobs to list.")] = 50,
    db_path: DbPathOption = None,
) -> None:
    """List background jobs."""
    console = Console()
    try:
        job_state = JobState(state) if state else None
    except ValueError:
        console.print(f"[bold red]Unknown job state: {state}[/]")
        raise Exit(code=1)
    queue = _open_queue(db_path)
    try:
        table = Table(title="Jobs")
        for column in ("ID", "Type", "Dedup key", "State", "Attempt", "Last error"):
            table.add_column(column)
        for job in queue.list_jobs(state=job_state, limit=limit):
            table.add_row(
                job.id,
                job.job_type.value,
                job.dedup_key,
                job.state.value,
                f"{job.attempt}/{job.retry_limit}",
                escape(job.last_error or ""),
            )
        console.print(table)
    finally:
        queue.close()


@app.command()
def replay(
    job_id: Annotated[str, Argument(help="Dead-lettered job to replay.")],
    db_path: DbPathOption = None,
) -> None:
    """Re-enqueue a dead-lettered job."""
    console = Console()
    queue = _open_queue(db_path)
    try:
        if not queue.replay(job_id):
            console.print(f"[bold red]Job {job_id} could not be replayed.[/]")
            raise Exit(code=1)
        console.print(f"[green]Job {job_id} re-enqueued.[/]")
    finally:
        queue.close()


@app.command()
def reembed(db_path: DbPathOption = None) -> None:
    """Enqueue embedding jobs for businesses that have no vector yet."""
    settings = Settings.from_env(db_path)
    configure_logging(settings.log_level)
    try:
        store = DuckDBRecordStore(settings.db_path, embedding_dim=settings.embedding_dim)
    except DatabaseLockedError as exc:
        raise _database_locked(exc)
    queue = DuckDBJobQueue(settings.db_path, connection=store.connection)
    try:
        job_ids = DirectoryService(store, queue).reembed_missing()
        Console().print(f"Enqueued {len(job_ids)} embedding job(s).")
    finally:
        queue.close()
        store.close()


@app.command("purge-jobs")
def purge_jobs(
    older_than_hours: Annotated[
        float, Option("--older-than-hours", help="Age of completed jobs to delete.")
    ] = 1.0,
    db_path: DbPathOption = None,
) -> None:
    """Delete completed jobs; dead letters are kept."""
    queue = _open_queue(db_path)
    try:
        removed = queue.purge_finished(older_than=timedelta(hours=older_than_hours))
        Console().print(f"Removed {removed} completed job(s).")
    finally:
        queue.close()


@app.command()
def serve(
    host: Annotated[str, Option("--host", help="Interface to bind.")] = "127.0.0.1",
    port: Annotated[int, Option("--port", help="Port to listen on.")] = 8000,
) -> None:
    """Run the HTTP API together with the embedding worker.

    The server holds the database for its whole lifetime, so the worker and
    the job commands above cannot run beside it; use the /api/jobs endpoints.
    Set YELLOWBOOK_RUN_WORKER=0 only when no jobs need processing.
    """
    from .server import run_server

    run_server(host=host, port=port)
