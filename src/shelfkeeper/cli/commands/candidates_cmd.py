# ABOUTME: The `shelfkeeper candidates` command listing provider matches for one book.
# ABOUTME: Lets a user compare several candidates and apply one through the direct update path.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfkeeper.cli.options import db_option, fail
from shelfkeeper.cli.session import open_session
from shelfkeeper.core.updater import RecordLockedError
from shelfkeeper.metadata.http import MetadataFetchError
from shelfkeeper.metadata.types import MetadataProvider


@click.command("candidates")
@click.argument("book_id", type=int)
@click.option(
    "--provider",
    default=MetadataProvider.OPEN_LIBRARY.value,
    show_default=True,
    help="Provider to ask.",
)
@click.option("--limit", type=click.IntRange(1, 20), default=5, show_default=True)
@click.option(
    "--apply",
    "apply_index",
    type=int,
    default=None,
    help="Apply the Nth candidate (1-based) to the book.",
)
@db_option
def candidates(
    book_id: int,
    provider: str,
    limit: int,
    apply_index: int | None,
    db_path: Path | None,
) -> None:
    """List metadata candidates for BOOK_ID from one provider."""
    console = Console()
    with open_session(db_path) as session:
        editor = session.editor()
        try:
            found = editor.fetch_candidates(book_id, provider, limit)
        except (ValueError, MetadataFetchError) as exc:
            fail(console, str(exc), exc)

        if not found:
            console.print("[yellow]No candidates found.[/yellow]")
            return

        table = Table(title="Candidates")
        table.add_column("#", style="bold", width=3)
        table.add_column("Title")
        table.add_column("Author")
        table.add_column("ISBN")
        table.add_column("Published")
        table.add_column("Publisher")
        for i, candidate in enumerate(found, start=1):
            table.add_row(
                str(i),
                candidate.title or "—",
                candidate.author or "—",
                candidate.isbn13 or candidate.isbn10 or "—",
                candidate.published_date.isoformat() if candidate.published_date else "—",
                candidate.publisher or "—",
            )
        console.print(table)

        if apply_index is None:
            return
        if not 1 <= apply_index <= len(found):
            fail(console, f"Choose a candidate between 1 and {len(found)}.")
        try:
            record, changed = editor.update(
                book_id, found[apply_index - 1], update_thumbnail=True
            )
        except RecordLockedError as exc:
            fail(console, str(exc), exc)

    if changed:
        console.print(f"Applied candidate {apply_index} to [bold]{record.title}[/bold].")
    else:
        console.print("[yellow]Nothing changed.[/yellow]")
