# ABOUTME: The `shelfkeeper edit` command: direct metadata update of one book.
# ABOUTME: Sets, clears, locks, and unlocks fields, and can replace the cover from a URL.

from pathlib import Path
from typing import Any

import click
from rich.console import Console

from shelfkeeper.cli.options import db_option, fail
from shelfkeeper.cli.session import open_session
from shelfkeeper.core.updater import RecordLockedError
from shelfkeeper.metadata.fields import (
    CLEARABLE_FIELDS,
    COLLECTION_FIELDS,
    LOCKABLE_FIELDS,
    coerce_value,
)
from shelfkeeper.metadata.types import CandidateMetadata, ClearFlags, ReplaceMode

_MODES = {
    "replace-all": ReplaceMode.REPLACE_ALL,
    "replace-missing": ReplaceMode.REPLACE_MISSING,
}


def build_update(
    assignments: tuple[str, ...],
    lock: tuple[str, ...],
    unlock: tuple[str, ...],
    cover_url: str | None,
) -> CandidateMetadata:
    """Turn ``field=value`` assignments and lock flags into an update.

    Collection values are separated by ``;``.

    Raises:
        ValueError: On malformed assignments, unknown fields, or bad values.
    """
    values: dict[str, Any] = {}
    for assignment in assignments:
        name, sep, raw = assignment.partition("=")
        name = name.strip()
        if not sep:
            raise ValueError(f"Expected field=value, got '{assignment}'")
        if name in COLLECTION_FIELDS:
            values[name] = tuple(part.strip() for part in raw.split(";") if part.strip())
        else:
            values[name] = coerce_value(name, raw.strip())

    locks: dict[str, bool] = {}
    for name, locked in [*((n, True) for n in lock), *((n, False) for n in unlock)]:
        if name not in LOCKABLE_FIELDS:
            raise ValueError(f"Unknown lockable field: {name}")
        locks[name] = locked

    return CandidateMetadata(**values, thumbnail_url=cover_url, locks=locks)


@click.command("edit")
@click.argument("book_id", type=int)
@click.option("--set", "assignments", multiple=True, metavar="FIELD=VALUE", help="Set a field.")
@click.option("--clear", "clear_fields", multiple=True, metavar="FIELD", help="Empty a field.")
@click.option("--lock", multiple=True, metavar="FIELD", help="Lock a field against refreshes.")
@click.option("--unlock", multiple=True, metavar="FIELD", help="Unlock a field.")
@click.option("--cover", "cover_url", default=None, help="Replace the cover from an image URL.")
@click.option(
    "--mode",
    type=click.Choice(sorted(_MODES)),
    default=None,
    help="Replace mode; by default any supplied value is written.",
)
@click.option(
    "--merge/--replace",
    "merge",
    default=False,
    help="Add collection values to the existing ones instead of replacing them.",
)
@db_option
def edit(
    book_id: int,
    assignments: tuple[str, ...],
    clear_fields: tuple[str, ...],
    lock: tuple[str, ...],
    unlock: tuple[str, ...],
    cover_url: str | None,
    mode: str | None,
    merge: bool,
    db_path: Path | None,
) -> None:
    """Edit the metadata of BOOK_ID directly; locks still apply."""
    console = Console()
    unknown = set(clear_fields) - CLEARABLE_FIELDS
    if unknown:
        fail(console, f"Unknown clearable field(s): {', '.join(sorted(unknown))}")
    try:
        update = build_update(assignments, lock, unlock, cover_url)
    except ValueError as exc:
        fail(console, str(exc), exc)

    with open_session(db_path) as session:
        try:
            record, changed = session.editor().update(
                book_id,
                update,
                clear=ClearFlags(frozenset(clear_fields)),
                replace_mode=_MODES.get(mode) if mode else None,
                merge_categories=merge,
                merge_moods=merge,
                merge_tags=merge,
                update_thumbnail=cover_url is not None,
            )
        except (ValueError, RecordLockedError) as exc:
            fail(console, str(exc), exc)

    if not changed:
        console.print(f"[yellow]Nothing changed for book {book_id}.[/yellow]")
        return
    console.print(f"Updated [bold]{record.title or record.file_name}[/bold].")
    if record.locked:
        console.print(f"  [dim]Locked:[/dim] {', '.join(sorted(record.locked))}")
    console.print(f"  [dim]Match score:[/dim] {record.match_score or 0:.0f}")
