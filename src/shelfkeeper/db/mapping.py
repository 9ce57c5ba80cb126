# ABOUTME: CatalogRecord dataclass and conversion to and from SQLite rows.
# ABOUTME: Handles JSON serialization for the lock set and ISO dates for date fields.

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

from shelfkeeper.metadata.fields import LOCKABLE_FIELDS, SCALAR_FIELDS
from shelfkeeper.metadata.types import BookReview


@dataclass
class CatalogRecord:
    """A cataloged book: bibliographic fields, taxonomy sets, locks, and file info."""

    id: int | None = None
    library_id: int | None = None
    file_name: str | None = None
    file_sub_path: str = ""
    book_type: str = "EPUB"
    file_hash: str | None = None
    title: str | None = None
    subtitle: str | None = None
    publisher: str | None = None
    published_date: date | None = None
    description: str | None = None
    series_name: str | None = None
    series_number: float | None = None
    series_total: int | None = None
    isbn13: str | None = None
    isbn10: str | None = None
    asin: str | None = None
    goodreads_id: str | None = None
    comicvine_id: str | None = None
    hardcover_id: str | None = None
    hardcover_book_id: int | None = None
    google_id: str | None = None
    page_count: int | None = None
    language: str | None = None
    amazon_rating: float | None = None
    amazon_review_count: int | None = None
    goodreads_rating: float | None = None
    goodreads_review_count: int | None = None
    hardcover_rating: float | None = None
    hardcover_review_count: int | None = None
    authors: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    moods: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    reviews: list[BookReview] = field(default_factory=list)
    locked: set[str] = field(default_factory=set)
    match_score: float | None = None
    cover_path: str | None = None
    cover_updated_on: datetime | None = None
    date_added: str | None = None

    @property
    def author(self) -> str:
        """Convenience property: joined author string for display."""
        return ", ".join(self.authors)

    def is_locked(self, name: str) -> bool:
        return name in self.locked

    def set_lock(self, name: str, locked: bool) -> None:
        if locked:
            self.locked.add(name)
        else:
            self.locked.discard(name)

    @property
    def all_locked(self) -> bool:
        """True when every lockable field, cover included, is locked."""
        return all(name in self.locked for name in LOCKABLE_FIELDS)

    def relative_path(self) -> Path | None:
        """Path of the book file relative to its library root."""
        if not self.file_name:
            return None
        return Path(self.file_sub_path or "") / self.file_name


# Columns of the books table written from a record (id and date_added are DB-managed).
_SCALAR_COLUMNS = [f.name for f in SCALAR_FIELDS]


def record_to_row(record: CatalogRecord) -> dict[str, Any]:
    """Convert a CatalogRecord to a dict of books-table columns.

    Taxonomy sets and reviews live in their own tables and are not included.
    """
    row: dict[str, Any] = {
        "library_id": record.library_id,
        "file_name": record.file_name,
        "file_sub_path": record.file_sub_path,
        "book_type": record.book_type,
        "file_hash": record.file_hash,
    }
    for name in _SCALAR_COLUMNS:
        row[name] = getattr(record, name)
    if record.published_date is not None:
        row["published_date"] = record.published_date.isoformat()
    row["locked_fields"] = json.dumps(sorted(record.locked))
    row["match_score"] = record.match_score
    row["cover_path"] = record.cover_path
    row["cover_updated_on"] = (
        record.cover_updated_on.isoformat() if record.cover_updated_on else None
    )
    return row


def row_to_record(row: Any) -> CatalogRecord:
    """Convert a books-table row (dict-like) to a CatalogRecord without collections."""
    published = row["published_date"]
    cover_updated = row["cover_updated_on"]
    record = CatalogRecord(
        id=row["id"],
        library_id=row["library_id"],
        file_name=row["file_name"],
        file_sub_path=row["file_sub_path"] or "",
        book_type=row["book_type"],
        file_hash=row["file_hash"],
        locked=set(json.loads(row["locked_fields"])) if row["locked_fields"] else set(),
        match_score=row["match_score"],
        cover_path=row["cover_path"],
        cover_updated_on=datetime.fromisoformat(cover_updated) if cover_updated else None,
        date_added=row["date_added"],
    )
    for name in _SCALAR_COLUMNS:
        setattr(record, name, row[name])
    record.published_date = date.fromisoformat(published) if published else None
    return record
