# ABOUTME: The `shelfkeeper consolidate` command group for catalog-wide taxonomy cleanup.
# ABOUTME: Merges duplicate authors, categories, series, etc. into a target, or deletes values.

from pathlib import Path

import click
from rich.console import Console

from shelfkeeper.cli.options import db_option, fail
from shelfkeeper.cli.session import open_session
from shelfkeeper.core.consolidation import (
    ConsolidationError,
    ConsolidationResult,
    ConsolidationService,
    TaxonomyKind,
)

_KINDS = click.Choice([kind.value for kind in TaxonomyKind])


def _report(console: Console, verb: str, result: ConsolidationResult) -> None:
    if not result.removed_values:
        console.print("[yellow]No matching values found.[/yellow]")
        return
    console.print(
        f"{verb} {len(result.removed_values)} value(s): "
        + ", ".join(f"[cyan]{value}[/cyan]" for value in result.removed_values)
    )
    console.print(f"[dim]{len(result.updated_books)} book(s) updated[/dim]")


@click.group("consolidate")
def consolidate() -> None:
    """Merge or delete taxonomy values across the whole catalog."""


@consolidate.command("merge")
@click.argument("kind", type=_KINDS)
@click.argument("values", nargs=-1, required=True)
@click.option(
    "--into",
    "targets",
    multiple=True,
    required=True,
    help="Target value; repeat for several (authors, categories, moods, tags only).",
)
@db_option
def consolidate_merge(
    kind: str, values: tuple[str, ...], targets: tuple[str, ...], db_path: Path | None
) -> None:
    """Replace every VALUES occurrence of KIND with the --into targets."""
    console = Console()
    with open_session(db_path) as session:
        service = ConsolidationService(
            session.store,
            session.services.updater(session.store, session.settings),
            session.settings,
        )
        try:
            result = service.consolidate(TaxonomyKind(kind), list(targets), list(values))
        except ConsolidationError as exc:
            fail(console, str(exc), exc)
    _report(console, "Merged", result)


@consolidate.command("delete")
@click.argument("kind", type=_KINDS)
@click.argument("values", nargs=-1, required=True)
@db_option
def consolidate_delete(kind: str, values: tuple[str, ...], db_path: Path | None) -> None:
    """Remove VALUES of KIND from every book."""
    console = Console()
    with open_session(db_path) as session:
        service = ConsolidationService(
            session.store,
            session.services.updater(session.store, session.settings),
            session.settings,
        )
        result = service.delete(TaxonomyKind(kind), list(values))
    _report(console, "Deleted", result)
