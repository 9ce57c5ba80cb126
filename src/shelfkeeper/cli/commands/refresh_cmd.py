# ABOUTME: The `shelfkeeper refresh` command for batch metadata refresh.
# ABOUTME: Runs a refresh job on a worker thread and renders its progress events with Rich.

from dataclasses import replace
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from shelfkeeper.cli.options import db_option, fail
from shelfkeeper.cli.session import open_session
from shelfkeeper.core.refresh import RefreshRequest, RefreshType
from shelfkeeper.db.catalog import LibraryNotFoundError
from shelfkeeper.db.jobs import JobNotFoundError, JobStatus
from shelfkeeper.notifications import BATCH_PROGRESS_TOPIC, BatchProgress


def _make_progress(console: Console) -> Progress:
    """Create a Rich progress bar for a refresh job."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


@click.command()
@click.argument("book_ids", nargs=-1, type=int)
@click.option("--library", "library_name", default=None, help="Refresh every book of a library.")
@click.option(
    "--review/--apply",
    "review",
    default=None,
    help="Stage proposals for review instead of writing (default: from settings).",
)
@click.option(
    "--covers/--no-covers",
    "covers",
    default=None,
    help="Replace covers with resolved cover images (default: from settings).",
)
@click.option(
    "--merge-categories/--replace-categories",
    "merge_categories",
    default=None,
    help="Union categories and authors instead of replacing them.",
)
@click.option("--user", "user_name", default=None, help="Name recorded as the job's initiator.")
@db_option
def refresh(
    book_ids: tuple[int, ...],
    library_name: str | None,
    review: bool | None,
    covers: bool | None,
    merge_categories: bool | None,
    user_name: str | None,
    db_path: Path | None,
) -> None:
    """Fetch metadata for BOOK_IDS (or a whole --library) and merge it.

    Press Ctrl-C to cancel; books already processed stay updated.
    """
    console = Console()
    if bool(book_ids) == bool(library_name):
        fail(console, "Give either book ids or --library.")

    with open_session(db_path) as session:
        library_id = None
        if library_name:
            try:
                library_id = session.store.get_library_by_name(library_name).id
            except LibraryNotFoundError as exc:
                fail(console, str(exc), exc)

        overrides: dict[str, Any] = {}
        if review is not None:
            overrides["review_before_apply"] = review
        if covers is not None:
            overrides["refresh_covers"] = covers
        if merge_categories is not None:
            overrides["merge_categories"] = merge_categories
        options = None
        if overrides:
            options = replace(session.settings.options_for_library(library_id), **overrides)

        request = RefreshRequest(
            refresh_type=RefreshType.LIBRARY if library_name else RefreshType.BOOKS,
            library_id=library_id,
            book_ids=book_ids,
            options=options,
            user_name=user_name,
        )

        jobs = session.jobs()
        failures: list[str] = []
        fatal: list[str] = []
        progress = _make_progress(console)
        task_id = progress.add_task("Starting", total=None)

        def on_progress(topic: str, payload: BatchProgress) -> None:
            if payload.total == 0 and payload.status == JobStatus.ERROR.value:
                fatal.append(payload.message)
                return
            if payload.status == JobStatus.ERROR.value:
                failures.append(payload.message)
            progress.update(
                task_id,
                total=payload.total,
                completed=payload.current,
                description=payload.message,
            )

        session.events.subscribe(BATCH_PROGRESS_TOPIC, on_progress)
        job_id = jobs.start(request)
        console.print(f"Started job [bold]{job_id}[/bold]")

        with progress:
            try:
                while not jobs.wait(job_id, timeout=0.2):
                    pass
            except KeyboardInterrupt:
                console.print("[yellow]Cancelling...[/yellow]")
                jobs.cancel(job_id)
                jobs.wait(job_id)
        session.events.unsubscribe(BATCH_PROGRESS_TOPIC, on_progress)

        if fatal:
            fail(console, fatal[0])
        try:
            job = jobs.status(job_id)
        except JobNotFoundError as exc:
            fail(console, f"Job {job_id} did not start.", exc)

    for message in failures:
        console.print(f"  [red]{message}[/red]")

    color = {
        JobStatus.COMPLETED: "green",
        JobStatus.CANCELLED: "yellow",
    }.get(job.status, "red")
    console.print(
        f"\n[{color}]{job.status.value}[/{color}]: "
        f"{job.completed_items}/{job.total_items} book(s) processed"
    )
    if job.review_mode and job.status is JobStatus.COMPLETED:
        console.print(f"Review proposals with: shelfkeeper proposals review {job_id}")
