# ABOUTME: The `shelfkeeper proposals` command group for reviewing staged metadata.
# ABOUTME: Provides ls, accept, reject, and an interactive review subcommand.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfkeeper.cli.options import db_option, fail
from shelfkeeper.cli.review import Decision, ProposalReviewSession
from shelfkeeper.cli.session import open_session
from shelfkeeper.core.updater import RecordLockedError
from shelfkeeper.db.jobs import ProposalStatus


def _status_choice(ctx: click.Context, param: click.Parameter, value: str | None):
    if value is None:
        return None
    try:
        return ProposalStatus.parse(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


@click.group("proposals")
def proposals() -> None:
    """Review metadata proposals staged by review-mode refresh jobs."""


@proposals.command("ls")
@click.argument("job_id")
@click.option(
    "--status",
    default=None,
    callback=_status_choice,
    help="Filter by FETCHED, ACCEPTED, or REJECTED.",
)
@db_option
def proposals_ls(job_id: str, status: ProposalStatus | None, db_path: Path | None) -> None:
    """List the proposals of a job."""
    console = Console()
    with open_session(db_path) as session:
        try:
            items = session.jobs().list_proposals(job_id, status)
        except ValueError as exc:
            fail(console, str(exc), exc)

    if not items:
        console.print("[yellow]No proposals.[/yellow]")
        return

    table = Table()
    table.add_column("ID", style="dim", width=5)
    table.add_column("Book", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Status")
    table.add_column("Reviewer")
    for proposal in items:
        table.add_row(
            str(proposal.id),
            str(proposal.book_id),
            proposal.metadata.title or "[dim]—[/dim]",
            proposal.metadata.author or "[dim]unknown[/dim]",
            proposal.status.value,
            proposal.reviewer or "",
        )
    console.print(table)
    console.print(f"\n[dim]{len(items)} proposal(s)[/dim]")


@proposals.command("accept")
@click.argument("job_id")
@click.argument("proposal_id", type=int)
@click.option("--reviewer", default=None, help="Name recorded as the reviewer.")
@db_option
def proposals_accept(
    job_id: str, proposal_id: int, reviewer: str | None, db_path: Path | None
) -> None:
    """Apply a proposal to its book."""
    console = Console()
    with open_session(db_path) as session:
        try:
            proposal = session.jobs().accept_proposal(job_id, proposal_id, reviewer)
        except (ValueError, RecordLockedError) as exc:
            fail(console, str(exc), exc)
    console.print(f"Accepted proposal {proposal.id} for book {proposal.book_id}.")


@proposals.command("reject")
@click.argument("job_id")
@click.argument("proposal_id", type=int)
@click.option("--reviewer", default=None, help="Name recorded as the reviewer.")
@db_option
def proposals_reject(
    job_id: str, proposal_id: int, reviewer: str | None, db_path: Path | None
) -> None:
    """Discard a proposal without touching its book."""
    console = Console()
    with open_session(db_path) as session:
        try:
            proposal = session.jobs().reject_proposal(job_id, proposal_id, reviewer)
        except ValueError as exc:
            fail(console, str(exc), exc)
    console.print(f"Rejected proposal {proposal.id} for book {proposal.book_id}.")


@proposals.command("review")
@click.argument("job_id")
@click.option("--reviewer", default=None, help="Name recorded as the reviewer.")
@db_option
def proposals_review(job_id: str, reviewer: str | None, db_path: Path | None) -> None:
    """Step through pending proposals and accept, reject, or skip each."""
    console = Console()
    with open_session(db_path) as session:
        service = session.jobs()
        try:
            pending = service.list_proposals(job_id, ProposalStatus.FETCHED)
        except ValueError as exc:
            fail(console, str(exc), exc)

        if not pending:
            console.print("[green]Nothing left to review.[/green]")
            return

        review = ProposalReviewSession(console=console)
        accepted = rejected = skipped = 0
        for position, proposal in enumerate(pending, start=1):
            record = session.store.find_record(proposal.book_id)
            if record is None:
                console.print(f"  [yellow]Book {proposal.book_id} no longer exists.[/yellow]")
                skipped += 1
                continue

            decision = review.review(record, proposal.metadata, position, len(pending))
            if decision is Decision.QUIT:
                skipped += len(pending) - position + 1
                break
            if decision is Decision.SKIP:
                skipped += 1
                continue
            if decision is Decision.REJECT:
                service.reject_proposal(job_id, proposal.id, reviewer)
                rejected += 1
                continue
            try:
                service.accept_proposal(job_id, proposal.id, reviewer)
                accepted += 1
            except RecordLockedError as exc:
                console.print(f"  [red]{exc}[/red]")
                skipped += 1

    parts = []
    if accepted:
        parts.append(f"[green]{accepted} accepted[/green]")
    if rejected:
        parts.append(f"[red]{rejected} rejected[/red]")
    if skipped:
        parts.append(f"[yellow]{skipped} skipped[/yellow]")
    console.print(f"\nDone: {', '.join(parts) or 'no decisions'}")
