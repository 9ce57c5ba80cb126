# ABOUTME: Interactive review of staged metadata proposals.
# ABOUTME: Displays current vs proposed values in a Rich table and prompts for a decision.

from enum import Enum

import click
from rich.console import Console
from rich.table import Table

from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.metadata.fields import COLLECTION_FIELDS, SCALAR_FIELD_NAMES
from shelfkeeper.metadata.types import CandidateMetadata


class Decision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    SKIP = "skip"
    QUIT = "quit"


_CHOICES = {
    "a": Decision.ACCEPT,
    "r": Decision.REJECT,
    "s": Decision.SKIP,
    "q": Decision.QUIT,
}


def _display(value: object) -> str:
    if value is None or value == "" or value == () or value == []:
        return "—"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    text = str(value)
    return text if len(text) <= 60 else text[:57] + "..."


def proposed_changes(
    record: CatalogRecord, proposal: CandidateMetadata
) -> list[tuple[str, str, str, bool]]:
    """Rows of (field, current, proposed, locked) for fields the proposal supplies."""
    rows = []
    for name in (*SCALAR_FIELD_NAMES, *COLLECTION_FIELDS):
        proposed = getattr(proposal, name)
        if proposed is None or proposed == ():
            continue
        current = getattr(record, name)
        rows.append((name, _display(current), _display(proposed), record.is_locked(name)))
    if proposal.thumbnail_url:
        rows.append(("cover", record.cover_path or "—", proposal.thumbnail_url, record.is_locked("cover")))
    return rows


class ProposalReviewSession:
    """Walks a reviewer through proposals one book at a time."""

    def __init__(self, *, console: Console | None = None) -> None:
        self._console = console or Console()

    def review(
        self, record: CatalogRecord, proposal: CandidateMetadata, position: int, total: int
    ) -> Decision:
        """Show one proposal against its book and return the reviewer's decision."""
        self._console.print(
            f"\n[bold][{position}/{total}] {record.title or record.file_name}[/bold]"
        )
        rows = proposed_changes(record, proposal)
        if not rows:
            self._console.print("  [yellow]The proposal has no values.[/yellow]")
        else:
            table = Table(title="Proposed Metadata")
            table.add_column("Field", style="bold")
            table.add_column("Current")
            table.add_column("Proposed")
            for name, current, proposed, locked in rows:
                marker = " [dim](locked)[/dim]" if locked else ""
                style = "" if current == proposed else "green"
                shown = f"[{style}]{proposed}[/{style}]" if style else proposed
                table.add_row(f"{name}{marker}", current, shown)
            self._console.print(table)

        while True:
            choice = click.prompt(
                "[a] Accept  [r] Reject  [s] Skip  [q] Quit", type=str, default="s"
            )
            decision = _CHOICES.get(choice.strip().lower()[:1])
            if decision is not None:
                return decision
