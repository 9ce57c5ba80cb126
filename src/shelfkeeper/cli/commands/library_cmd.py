# ABOUTME: The `shelfkeeper library` command group for registering library roots.
# ABOUTME: Provides add and ls subcommands.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfkeeper.cli.options import db_option
from shelfkeeper.cli.session import open_session


@click.group("library")
def library() -> None:
    """Manage libraries (named root directories of book files)."""


@library.command("add")
@click.argument("name")
@click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@db_option
def library_add(name: str, root: Path, db_path: Path | None) -> None:
    """Register ROOT as a library called NAME."""
    console = Console()
    with open_session(db_path) as session:
        with session.store.transaction():
            lib = session.store.add_library(name, root.resolve())
    console.print(f"Added library [bold]{lib.name}[/bold] (id {lib.id}) at {lib.root_path}")


@library.command("ls")
@db_option
def library_ls(db_path: Path | None) -> None:
    """List libraries with their book counts."""
    console = Console()
    with open_session(db_path) as session:
        libraries = session.store.list_libraries()
        if not libraries:
            console.print("[yellow]No libraries registered.[/yellow]")
            return

        table = Table()
        table.add_column("ID", style="dim", width=4)
        table.add_column("Name", style="bold")
        table.add_column("Root")
        table.add_column("Books", justify="right")
        for lib in libraries:
            count = len(session.store.ids_by_library(lib.id))
            table.add_row(str(lib.id), lib.name, str(lib.root_path), str(count))
        console.print(table)
