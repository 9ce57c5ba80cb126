# ABOUTME: Transactional catalog store: libraries, records, taxonomy entities, and reviews.
# ABOUTME: Wraps one sqlite3 connection; callers group writes with transaction().

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from shelfkeeper.db.mapping import CatalogRecord, record_to_row, row_to_record
from shelfkeeper.metadata.fields import COLLECTION_FIELDS
from shelfkeeper.metadata.types import BookReview, MetadataProvider

logger = logging.getLogger(__name__)

# Taxonomy kind -> (entity table, join table)
_ENTITY_TABLES: dict[str, tuple[str, str]] = {
    "authors": ("authors", "book_authors"),
    "categories": ("categories", "book_categories"),
    "moods": ("moods", "book_moods"),
    "tags": ("tags", "book_tags"),
}

# Scalar columns that consolidation can match on case-insensitively.
_MATCHABLE_COLUMNS = frozenset({"series_name", "publisher", "language"})


class DuplicateBookError(Exception):
    """Raised when attempting to add a book with a file_hash that already exists."""


class RecordNotFoundError(ValueError):
    """Raised when a book id does not exist in the catalog."""


class LibraryNotFoundError(ValueError):
    """Raised when a library id or name does not exist."""


@dataclass
class Library:
    """A named root directory that holds book files."""

    id: int
    name: str
    root_path: Path


def _tables(kind: str) -> tuple[str, str]:
    try:
        return _ENTITY_TABLES[kind]
    except KeyError:
        raise ValueError(f"Unknown taxonomy kind: {kind}") from None


class CatalogStore:
    """Typed persistence for the catalog on top of a sqlite3 connection.

    Methods do not commit on their own; wrap writes in ``transaction()``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._depth = 0

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator["CatalogStore"]:
        """Commit the enclosed writes as one unit, or roll them all back.

        Nested use joins the outermost transaction.
        """
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield self
        except BaseException:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()
        finally:
            self._depth = 0

    # --- Libraries ---

    def add_library(self, name: str, root_path: Path) -> Library:
        cursor = self._conn.execute(
            "INSERT INTO libraries (name, root_path) VALUES (?, ?)",
            (name, str(root_path)),
        )
        return Library(id=cursor.lastrowid, name=name, root_path=root_path)  # type: ignore[arg-type]

    def get_library(self, library_id: int) -> Library:
        """Retrieve a library by id.

        Raises:
            LibraryNotFoundError: If no such library exists.
        """
        row = self._conn.execute(
            "SELECT * FROM libraries WHERE id = ?", (library_id,)
        ).fetchone()
        if row is None:
            raise LibraryNotFoundError(f"Library with id {library_id} not found")
        return Library(id=row["id"], name=row["name"], root_path=Path(row["root_path"]))

    def get_library_by_name(self, name: str) -> Library:
        """Retrieve a library by name.

        Raises:
            LibraryNotFoundError: If no such library exists.
        """
        row = self._conn.execute("SELECT * FROM libraries WHERE name = ?", (name,)).fetchone()
        if row is None:
            raise LibraryNotFoundError(f"Library '{name}' not found")
        return Library(id=row["id"], name=row["name"], root_path=Path(row["root_path"]))

    def list_libraries(self) -> list[Library]:
        cursor = self._conn.execute("SELECT * FROM libraries ORDER BY name")
        return [
            Library(id=row["id"], name=row["name"], root_path=Path(row["root_path"]))
            for row in cursor.fetchall()
        ]

    def book_path(self, record: CatalogRecord) -> Path | None:
        """Absolute path of a record's book file, or None if it has no file."""
        relative = record.relative_path()
        if relative is None or record.library_id is None:
            return None
        return self.get_library(record.library_id).root_path / relative

    # --- Records ---

    def add_record(self, record: CatalogRecord) -> int:
        """Insert a new record with its collections and reviews.

        Returns:
            The new book id, also set on ``record.id``.

        Raises:
            DuplicateBookError: If a book with this file_hash already exists.
        """
        row = record_to_row(record)
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" for _ in row)
        try:
            cursor = self._conn.execute(
                f"INSERT INTO books ({columns}) VALUES ({placeholders})",
                list(row.values()),
            )
        except sqlite3.IntegrityError as exc:
            if "books.file_hash" in str(exc):
                raise DuplicateBookError(
                    f"Book with hash {record.file_hash} already exists"
                ) from exc
            raise

        record.id = cursor.lastrowid
        self._write_collections(record)
        self._write_reviews(record)
        return record.id  # type: ignore[return-value]

    def find_record(self, book_id: int) -> CatalogRecord | None:
        """Retrieve a fully populated record by id, or None."""
        row = self._conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        if row is None:
            return None
        record = row_to_record(row)
        self._load_collections(record)
        return record

    def get_record(self, book_id: int) -> CatalogRecord:
        """Retrieve a fully populated record by id.

        Raises:
            RecordNotFoundError: If the book_id does not exist.
        """
        record = self.find_record(book_id)
        if record is None:
            raise RecordNotFoundError(f"Book with id {book_id} not found")
        return record

    def get_by_hash(self, file_hash: str) -> CatalogRecord | None:
        row = self._conn.execute(
            "SELECT id FROM books WHERE file_hash = ?", (file_hash,)
        ).fetchone()
        return self.find_record(row["id"]) if row else None

    def save_record(self, record: CatalogRecord) -> None:
        """Persist every field, collection, and review of an existing record.

        Raises:
            RecordNotFoundError: If the record's id does not exist.
        """
        row = record_to_row(record)
        set_clause = ", ".join(f"{k} = ?" for k in row)
        set_clause += ", date_modified = strftime('%Y-%m-%dT%H:%M:%S', 'now')"
        cursor = self._conn.execute(
            f"UPDATE books SET {set_clause} WHERE id = ?",
            [*row.values(), record.id],
        )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Book with id {record.id} not found")
        self._write_collections(record)
        self._write_reviews(record)

    def delete_record(self, book_id: int) -> None:
        """Delete a book and its join rows.

        Raises:
            RecordNotFoundError: If the book_id does not exist.
        """
        cursor = self._conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Book with id {book_id} not found")

    def list_records(self, library_id: int | None = None) -> list[CatalogRecord]:
        """Return all records (optionally for one library), ordered by id."""
        ids = self.all_ids() if library_id is None else self.ids_by_library(library_id)
        return [self.get_record(book_id) for book_id in ids]

    def all_ids(self) -> list[int]:
        cursor = self._conn.execute("SELECT id FROM books ORDER BY id")
        return [row[0] for row in cursor.fetchall()]

    def ids_by_library(self, library_id: int) -> list[int]:
        cursor = self._conn.execute(
            "SELECT id FROM books WHERE library_id = ? ORDER BY id", (library_id,)
        )
        return [row[0] for row in cursor.fetchall()]

    def ids_with_field(self, column: str, value: str) -> list[int]:
        """Ids of books whose series_name, publisher, or language matches case-insensitively."""
        if column not in _MATCHABLE_COLUMNS:
            raise ValueError(f"Field {column} cannot be matched")
        cursor = self._conn.execute(
            f"SELECT id FROM books WHERE {column} = ? COLLATE NOCASE ORDER BY id", (value,)
        )
        return [row[0] for row in cursor.fetchall()]

    # --- Taxonomy entities ---

    def resolve_or_create(self, kind: str, name: str) -> str:
        """Find a taxonomy entity by exact name, creating it if absent.

        Uses INSERT OR IGNORE followed by a lookup so a concurrent writer
        inserting the same name is tolerated by the UNIQUE constraint.

        Returns:
            The stored entity name.
        """
        table, _ = _tables(kind)
        self._conn.execute(f"INSERT OR IGNORE INTO {table} (name) VALUES (?)", (name,))
        row = self._conn.execute(f"SELECT name FROM {table} WHERE name = ?", (name,)).fetchone()
        if row is None:
            raise sqlite3.IntegrityError(f"Could not resolve {kind} entity '{name}'")
        return row["name"]

    def find_entity(self, kind: str, name: str) -> tuple[int, str] | None:
        """Exact-name entity lookup. Returns (entity_id, stored_name) or None."""
        table, _ = _tables(kind)
        row = self._conn.execute(
            f"SELECT id, name FROM {table} WHERE name = ?", (name,)
        ).fetchone()
        return (row["id"], row["name"]) if row else None

    def find_entity_ci(self, kind: str, name: str) -> tuple[int, str] | None:
        """Case-insensitive entity lookup preferring an exact-case match.

        Returns:
            (entity_id, stored_name) or None.
        """
        table, _ = _tables(kind)
        row = self._conn.execute(
            f"SELECT id, name FROM {table} WHERE name = ? COLLATE NOCASE "
            "ORDER BY name = ? DESC, id LIMIT 1",
            (name, name),
        ).fetchone()
        return (row["id"], row["name"]) if row else None

    def rename_entity(self, kind: str, entity_id: int, name: str) -> None:
        table, _ = _tables(kind)
        self._conn.execute(f"UPDATE {table} SET name = ? WHERE id = ?", (name, entity_id))

    def delete_entity(self, kind: str, entity_id: int) -> None:
        table, _ = _tables(kind)
        self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (entity_id,))

    def ids_with_entity(self, kind: str, entity_id: int) -> list[int]:
        _, join = _tables(kind)
        cursor = self._conn.execute(
            f"SELECT book_id FROM {join} WHERE entity_id = ? ORDER BY book_id", (entity_id,)
        )
        return [row[0] for row in cursor.fetchall()]

    def list_entities(self, kind: str) -> list[tuple[str, int]]:
        """List entities of a kind with their book counts, alphabetically."""
        table, join = _tables(kind)
        cursor = self._conn.execute(
            f"SELECT e.name, COUNT(j.book_id) FROM {table} e "
            f"LEFT JOIN {join} j ON e.id = j.entity_id "
            "GROUP BY e.id ORDER BY e.name"
        )
        return [(row[0], row[1]) for row in cursor.fetchall()]

    def _write_collections(self, record: CatalogRecord) -> None:
        for kind in COLLECTION_FIELDS:
            table, join = _tables(kind)
            self._conn.execute(f"DELETE FROM {join} WHERE book_id = ?", (record.id,))
            for position, name in enumerate(getattr(record, kind)):
                stored = self.resolve_or_create(kind, name)
                self._conn.execute(
                    f"INSERT OR IGNORE INTO {join} (book_id, entity_id, position) "
                    f"SELECT ?, id, ? FROM {table} WHERE name = ?",
                    (record.id, position, stored),
                )

    def _load_collections(self, record: CatalogRecord) -> None:
        for kind in COLLECTION_FIELDS:
            table, join = _tables(kind)
            cursor = self._conn.execute(
                f"SELECT e.name FROM {table} e JOIN {join} j ON e.id = j.entity_id "
                "WHERE j.book_id = ? ORDER BY j.position, e.name",
                (record.id,),
            )
            setattr(record, kind, [row[0] for row in cursor.fetchall()])

        cursor = self._conn.execute(
            "SELECT * FROM book_reviews WHERE book_id = ? ORDER BY id", (record.id,)
        )
        record.reviews = [
            BookReview(
                provider=MetadataProvider.parse(row["provider"]) if row["provider"] else None,
                reviewer=row["reviewer"],
                title=row["title"],
                body=row["body"],
                rating=row["rating"],
                date=datetime.fromisoformat(row["review_date"]) if row["review_date"] else None,
                url=row["url"],
            )
            for row in cursor.fetchall()
        ]

    def _write_reviews(self, record: CatalogRecord) -> None:
        self._conn.execute("DELETE FROM book_reviews WHERE book_id = ?", (record.id,))
        for review in record.reviews:
            self._conn.execute(
                "INSERT INTO book_reviews "
                "(book_id, provider, reviewer, title, body, rating, review_date, url) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    review.provider.value if review.provider else None,
                    review.reviewer,
                    review.title,
                    review.body,
                    review.rating,
                    review.date.isoformat() if review.date else None,
                    review.url,
                ),
            )
