# ABOUTME: The `shelfkeeper scores` command group for match score maintenance.
# ABOUTME: Recalculates every record's completeness score with the configured weights.

from pathlib import Path

import click
from rich.console import Console

from shelfkeeper.cli.options import db_option
from shelfkeeper.cli.session import open_session


@click.group("scores")
def scores() -> None:
    """Maintain metadata match scores."""


@scores.command("recalc")
@db_option
def scores_recalc(db_path: Path | None) -> None:
    """Recompute the match score of every book."""
    console = Console()
    with open_session(db_path) as session:
        changed = session.editor().recalculate_scores(session.settings.match_weights)
    console.print(f"Recalculated match scores: [bold]{changed}[/bold] changed.")
