# ABOUTME: Shared Click options and error reporting for Shelfkeeper CLI commands.
# ABOUTME: Provides the --db flag and a helper that turns domain errors into exit code 1.

from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console

from shelfkeeper.db.connection import DEFAULT_DB_PATH

db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    help=f"Path to library database (default: {DEFAULT_DB_PATH})",
)


def fail(console: Console, message: str, exc: Exception | None = None) -> NoReturn:
    """Print an error in red and exit with status 1."""
    console.print(f"[red]{message}[/red]")
    raise SystemExit(1) from exc
