# ABOUTME: The `shelfkeeper import` command for cataloging EPUBs of a library.
# ABOUTME: Walks the library root (or a directory inside it) and stores records in the DB.

from pathlib import Path

import click
from rich.console import Console

from shelfkeeper.cli.options import db_option, fail
from shelfkeeper.cli.session import open_session
from shelfkeeper.core.importer import find_epubs, import_books
from shelfkeeper.db.catalog import LibraryNotFoundError
from shelfkeeper.files.covers import CoverStore


@click.command("import")
@click.argument("library_name")
@click.argument(
    "directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=False,
)
@db_option
def import_command(library_name: str, directory: Path | None, db_path: Path | None) -> None:
    """Scan a library for EPUB files and catalog them.

    DIRECTORY defaults to the library root and must lie inside it.
    """
    console = Console()
    with open_session(db_path) as session:
        try:
            lib = session.store.get_library_by_name(library_name)
        except LibraryNotFoundError as exc:
            fail(console, str(exc), exc)

        epub_files = find_epubs(directory or lib.root_path)
        if not epub_files:
            console.print(f"[yellow]No EPUB files found in {directory or lib.root_path}[/yellow]")
            return

        console.print(f"Found [bold]{len(epub_files)}[/bold] EPUB file(s)\n")
        settings = session.settings
        result = import_books(
            epub_files,
            session.store,
            lib,
            weights=settings.match_weights,
            covers=CoverStore(Path(settings.covers_dir)),
        )

    parts = []
    if result.added:
        parts.append(f"[green]{result.added} added[/green]")
    if result.skipped:
        parts.append(f"[yellow]{result.skipped} skipped[/yellow]")
    if result.errors:
        parts.append(f"[red]{result.errors} error(s)[/red]")
    console.print(", ".join(parts))

    if result.error_details:
        console.print(f"\n[yellow]{result.errors} file(s) could not be read:[/yellow]")
        for path, msg in result.error_details:
            console.print(f"  [dim]{path.name}:[/dim] {msg}")
