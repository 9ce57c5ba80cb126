# ABOUTME: The `shelfkeeper settings` command group for application settings.
# ABOUTME: Shows and updates persistence switches, providers, match weights, and refresh options.

from dataclasses import replace
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from shelfkeeper.cli.options import db_option, fail
from shelfkeeper.cli.session import open_session
from shelfkeeper.db.catalog import LibraryNotFoundError
from shelfkeeper.metadata.options import RefreshOptions
from shelfkeeper.metadata.scoring import MatchWeights
from shelfkeeper.settings import SIMPLE_KEYS


def _options_table(title: str, options: RefreshOptions) -> Table:
    table = Table(title=title)
    table.add_column("Field", style="bold")
    table.add_column("Providers (highest first)")
    table.add_column("Enabled")
    for name, authority in sorted(options.field_options.items()):
        table.add_row(
            name,
            ", ".join(p.value for p in authority) or "—",
            "yes" if options.is_enabled(name) else "[dim]no[/dim]",
        )
    table.caption = (
        f"covers: {options.refresh_covers}, merge categories: {options.merge_categories}, "
        f"review before apply: {options.review_before_apply}"
    )
    return table


@click.group("settings")
def settings() -> None:
    """View and change application settings."""


@settings.command("show")
@db_option
def settings_show(db_path: Path | None) -> None:
    """Show the current settings."""
    console = Console()
    with open_session(db_path) as session:
        current = session.settings
        library_names = {lib.id: lib.name for lib in session.store.list_libraries()}

    table = Table(title="Settings")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key in SIMPLE_KEYS:
        table.add_row(key, str(getattr(current, key)))
    table.add_row(
        "enabled_providers", ", ".join(sorted(p.value for p in current.enabled_providers)) or "—"
    )
    console.print(table)

    weights = Table(title="Match Weights")
    weights.add_column("Field", style="bold")
    weights.add_column("Weight", justify="right")
    for name, value in current.match_weights.to_dict().items():
        weights.add_row(name, f"{value:g}")
    console.print(weights)

    console.print(_options_table("Default Refresh Options", current.default_refresh_options))
    for library_id, options in current.library_refresh_options.items():
        label = library_names.get(library_id, f"library {library_id}")
        console.print(_options_table(f"Refresh Options: {label}", options))


@settings.command("set")
@click.argument("key", type=click.Choice(sorted(SIMPLE_KEYS)))
@click.argument("value")
@db_option
def settings_set(key: str, value: str, db_path: Path | None) -> None:
    """Set a simple setting such as save_to_original_file or file_pattern."""
    console = Console()
    with open_session(db_path) as session:
        try:
            with session.store.transaction():
                updated = session.settings_store.set_value(key, value)
        except ValueError as exc:
            fail(console, str(exc), exc)
    console.print(f"{key} = [cyan]{getattr(updated, key)}[/cyan]")


@settings.command("providers")
@click.argument("names", nargs=-1, required=True)
@db_option
def settings_providers(names: tuple[str, ...], db_path: Path | None) -> None:
    """Enable exactly the NAMES providers."""
    console = Console()
    with open_session(db_path) as session:
        try:
            with session.store.transaction():
                updated = session.settings_store.set_enabled_providers(list(names))
        except ValueError as exc:
            fail(console, str(exc), exc)
    console.print(
        "Enabled providers: "
        + ", ".join(f"[cyan]{p.value}[/cyan]" for p in sorted(updated.enabled_providers))
    )


@settings.command("weight")
@click.argument("field")
@click.argument("value", type=click.FloatRange(min=0))
@db_option
def settings_weight(field: str, value: float, db_path: Path | None) -> None:
    """Set the match score weight of FIELD."""
    console = Console()
    with open_session(db_path) as session:
        current = session.settings
        weights = current.match_weights.to_dict()
        if field not in weights:
            fail(console, f"Unknown weight: {field}")
        weights[field] = value
        with session.store.transaction():
            session.settings_store.save(
                replace(current, match_weights=MatchWeights.from_dict(weights))
            )
    console.print(f"Weight of {field} = [cyan]{value:g}[/cyan]")
    console.print("[dim]Run `shelfkeeper scores recalc` to rescore existing books.[/dim]")


@settings.command("refresh")
@click.option("--library", "library_name", default=None, help="Options for one library only.")
@click.option("--covers/--no-covers", default=None)
@click.option("--merge-categories/--replace-categories", "merge_categories", default=None)
@click.option("--review/--apply", "review", default=None)
@click.option(
    "--authority",
    multiple=True,
    metavar="FIELD=P1,P2",
    help="Provider order for a field, highest priority first (up to four).",
)
@click.option("--enable", "enable", multiple=True, metavar="FIELD")
@click.option("--disable", "disable", multiple=True, metavar="FIELD")
@db_option
def settings_refresh(
    library_name: str | None,
    covers: bool | None,
    merge_categories: bool | None,
    review: bool | None,
    authority: tuple[str, ...],
    enable: tuple[str, ...],
    disable: tuple[str, ...],
    db_path: Path | None,
) -> None:
    """Change refresh options globally or for one --library."""
    console = Console()
    with open_session(db_path) as session:
        library_id = None
        if library_name:
            try:
                library_id = session.store.get_library_by_name(library_name).id
            except LibraryNotFoundError as exc:
                fail(console, str(exc), exc)

        current = session.settings.options_for_library(library_id)
        data: dict[str, Any] = current.to_dict()
        if covers is not None:
            data["refresh_covers"] = covers
        if merge_categories is not None:
            data["merge_categories"] = merge_categories
        if review is not None:
            data["review_before_apply"] = review
        for entry in authority:
            name, sep, providers = entry.partition("=")
            if not sep:
                fail(console, f"Expected FIELD=P1,P2, got '{entry}'")
            data["field_options"][name.strip()] = [
                p.strip() for p in providers.split(",") if p.strip()
            ]
        enabled = (set(data["enabled_fields"]) | set(enable)) - set(disable)
        data["enabled_fields"] = sorted(enabled)

        try:
            options = RefreshOptions.from_dict(data)
            with session.store.transaction():
                session.settings_store.set_refresh_options(options, library_id)
        except ValueError as exc:
            fail(console, str(exc), exc)

    scope = f"library {library_name}" if library_name else "default"
    console.print(_options_table(f"Refresh Options: {scope}", options))

