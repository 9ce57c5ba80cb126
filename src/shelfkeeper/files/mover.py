# ABOUTME: Relocates book files to match the library naming pattern after metadata changes.
# ABOUTME: Renders the pattern from record fields, avoids collisions, and prunes emptied folders.

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from shelfkeeper.db.catalog import CatalogStore
from shelfkeeper.db.mapping import CatalogRecord

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
_PLACEHOLDER = re.compile(r"\{(\w+)\}")
_MAX_SEGMENT = 120


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a move attempt; names are relative to the library root."""

    moved: bool
    new_name: str | None = None
    new_sub_path: str | None = None


@runtime_checkable
class FileMover(Protocol):
    def move_if_needed(self, record: CatalogRecord) -> MoveResult: ...


def _sanitize(segment: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", segment).strip().strip(".")
    return cleaned[:_MAX_SEGMENT].strip()


def render_pattern(pattern: str, record: CatalogRecord) -> str:
    """Render a naming pattern such as ``{authors}/{title}`` for a record.

    Placeholders: authors, title, series, series_index, year, language,
    publisher. Unknown placeholders render empty. Each path segment is
    sanitized; empty segments are dropped.
    """
    values = {
        "authors": ", ".join(record.authors) or "Unknown Author",
        "title": record.title or Path(record.file_name or "Untitled").stem,
        "series": record.series_name or "",
        "series_index": f"{record.series_number:g}" if record.series_number is not None else "",
        "year": str(record.published_date.year) if record.published_date else "",
        "language": record.language or "",
        "publisher": record.publisher or "",
    }
    rendered = _PLACEHOLDER.sub(lambda m: values.get(m.group(1), ""), pattern)
    segments = [_sanitize(part) for part in rendered.split("/")]
    return "/".join(part for part in segments if part)


def _available(target: Path) -> Path:
    """Return target, or target with a " (n)" suffix if it already exists."""
    if not target.exists():
        return target
    counter = 1
    while True:
        candidate = target.with_name(f"{target.stem} ({counter}){target.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def _prune_empty_dirs(start: Path, root: Path) -> None:
    current = start
    while current != root and root in current.parents:
        try:
            current.rmdir()
        except OSError:
            return
        current = current.parent


class LibraryFileMover:
    """Moves a record's file inside its library to the configured pattern."""

    def __init__(self, store: CatalogStore, pattern: str) -> None:
        self._store = store
        self._pattern = pattern

    def move_if_needed(self, record: CatalogRecord) -> MoveResult:
        """Move the file if its pattern location differs from where it is.

        Raises:
            FileNotFoundError: If the current file is missing.
        """
        current = self._store.book_path(record)
        if current is None or record.library_id is None:
            return MoveResult(moved=False)
        if not current.exists():
            raise FileNotFoundError(f"Book file not found: {current}")

        root = self._store.get_library(record.library_id).root_path
        rendered = render_pattern(self._pattern, record)
        if not rendered:
            return MoveResult(moved=False)
        target = root / f"{rendered}{current.suffix}"
        if target == current:
            return MoveResult(moved=False)

        target = _available(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(current), str(target))
        _prune_empty_dirs(current.parent, root)
        logger.info("Moved %s -> %s", current, target)

        relative = target.relative_to(root)
        sub_path = relative.parent.as_posix()
        return MoveResult(
            moved=True,
            new_name=relative.name,
            new_sub_path="" if sub_path == "." else sub_path,
        )
