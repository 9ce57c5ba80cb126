# ABOUTME: The `shelfkeeper jobs` command group for inspecting refresh jobs.
# ABOUTME: Provides ls, show, cancel, and rm subcommands.

from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfkeeper.cli.options import db_option, fail
from shelfkeeper.cli.session import open_session
from shelfkeeper.db.jobs import JobNotFoundError, ProposalStatus

_STATUS_STYLES = {
    "IN_PROGRESS": "cyan",
    "COMPLETED": "green",
    "CANCELLED": "yellow",
    "ERROR": "red",
}


def _when(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "—"


@click.group("jobs")
def jobs() -> None:
    """Inspect and control metadata refresh jobs."""


@jobs.command("ls")
@click.option("--active", is_flag=True, default=False, help="Only running jobs or jobs awaiting review.")
@db_option
def jobs_ls(active: bool, db_path: Path | None) -> None:
    """List refresh jobs, newest first."""
    console = Console()
    with open_session(db_path) as session:
        summaries = session.jobs().list_jobs(active_only=active)

    if not summaries:
        console.print("[yellow]No refresh jobs.[/yellow]")
        return

    table = Table()
    table.add_column("Job", style="dim")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Progress", justify="right")
    table.add_column("To review", justify="right")
    table.add_column("Summary")
    for summary in summaries:
        job = summary.job
        style = _STATUS_STYLES.get(job.status.value, "")
        table.add_row(
            job.id,
            f"[{style}]{job.status.value}[/{style}]",
            _when(job.started_at),
            f"{job.completed_items}/{job.total_items}",
            str(summary.counts[ProposalStatus.FETCHED]) if job.review_mode else "—",
            summary.message,
        )
    console.print(table)


@jobs.command("show")
@click.argument("job_id")
@db_option
def jobs_show(job_id: str, db_path: Path | None) -> None:
    """Show one job and its proposal counts."""
    console = Console()
    with open_session(db_path) as session:
        service = session.jobs()
        try:
            job = service.status(job_id)
        except JobNotFoundError as exc:
            fail(console, str(exc), exc)
        proposals = service.list_proposals(job_id)

    console.print(f"[bold]Job {job.id}[/bold]")
    console.print(f"  Status:    {job.status.value}")
    console.print(f"  Started:   {_when(job.started_at)}")
    console.print(f"  Finished:  {_when(job.completed_at)}")
    console.print(f"  Progress:  {job.completed_items}/{job.total_items}")
    if job.user_name:
        console.print(f"  Initiator: {job.user_name}")
    if job.message:
        console.print(f"  Message:   {job.message}")
    if job.review_mode:
        counts = {status: 0 for status in ProposalStatus}
        for proposal in proposals:
            counts[proposal.status] += 1
        console.print(
            "  Proposals: "
            + ", ".join(f"{count} {status.value.lower()}" for status, count in counts.items())
        )


@jobs.command("cancel")
@click.argument("job_id")
@db_option
def jobs_cancel(job_id: str, db_path: Path | None) -> None:
    """Ask a running job to stop before its next book."""
    console = Console()
    with open_session(db_path) as session:
        try:
            requested = session.jobs().cancel(job_id)
        except JobNotFoundError as exc:
            fail(console, str(exc), exc)

    if requested:
        console.print(f"Cancellation requested for job [bold]{job_id}[/bold].")
    else:
        console.print(f"[yellow]Job {job_id} has already finished.[/yellow]")


@jobs.command("rm")
@click.argument("job_id")
@db_option
def jobs_rm(job_id: str, db_path: Path | None) -> None:
    """Delete a finished job and its proposals."""
    console = Console()
    with open_session(db_path) as session:
        try:
            session.jobs().delete(job_id)
        except ValueError as exc:
            fail(console, str(exc), exc)

    console.print(f"Deleted job [bold]{job_id}[/bold].")
