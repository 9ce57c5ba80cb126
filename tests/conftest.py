# ABOUTME: Shared pytest fixtures for Shelfkeeper tests.
# ABOUTME: Provides sample EPUB files, a temporary catalog with a library, and record factories.

import sqlite3
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from ebooklib import epub

from shelfkeeper.db.catalog import CatalogStore, Library
from shelfkeeper.db.connection import open_catalog
from shelfkeeper.db.mapping import CatalogRecord


def _write_epub(
    path: Path,
    *,
    title: str,
    authors: list[str],
    isbn: str | None = None,
    publisher: str | None = None,
    description: str | None = None,
) -> Path:
    book = epub.EpubBook()
    book.set_identifier(f"urn:isbn:{isbn}" if isbn else f"id-{path.stem}")
    book.set_title(title)
    book.set_language("en")
    for author in authors:
        book.add_author(author)
    if publisher:
        book.add_metadata("DC", "publisher", publisher)
    if description:
        book.add_metadata("DC", "description", description)

    chapter = epub.EpubHtml(title="Chapter 1", file_name="chap01.xhtml", lang="en")
    chapter.content = b"<html><body><h1>Chapter 1</h1><p>Content.</p></body></html>"
    book.add_item(chapter)

    book.toc = [epub.Link("chap01.xhtml", "Chapter 1", "chap01")]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", chapter]

    path.parent.mkdir(parents=True, exist_ok=True)
    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    """Empty directory used as a library root."""
    root = tmp_path / "books"
    root.mkdir()
    return root


@pytest.fixture
def sample_epub(library_root: Path) -> Path:
    """A valid EPUB with known metadata inside the library root."""
    return _write_epub(
        library_root / "left_hand.epub",
        title="The Left Hand of Darkness",
        authors=["Ursula K. Le Guin"],
        isbn="9780441478125",
        publisher="Ace Books",
        description="An envoy visits Gethen.",
    )


@pytest.fixture
def minimal_epub(library_root: Path) -> Path:
    """An EPUB with only a title, in a subdirectory of the library root."""
    return _write_epub(library_root / "misc" / "minimal.epub", title="Untitled Book", authors=[])


@pytest.fixture
def corrupt_epub(library_root: Path) -> Path:
    """A file with an .epub suffix that is not a valid EPUB."""
    filepath = library_root / "corrupt.epub"
    filepath.write_text("this is not a valid epub file")
    return filepath


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "catalog.db"


@pytest.fixture
def conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    """An open catalog connection on a fresh database."""
    connection = open_catalog(db_path)
    yield connection
    connection.close()


@pytest.fixture
def store(conn: sqlite3.Connection) -> CatalogStore:
    return CatalogStore(conn)


@pytest.fixture
def library(store: CatalogStore, library_root: Path) -> Library:
    """A committed library rooted at ``library_root``."""
    with store.transaction():
        return store.add_library("Main", library_root)


@pytest.fixture
def make_record(store: CatalogStore, library: Library) -> Callable[..., CatalogRecord]:
    """Factory adding a committed record to the library; fields default to a blank book."""
    counter = iter(range(1, 10_000))

    def _make(**fields: Any) -> CatalogRecord:
        n = next(counter)
        fields.setdefault("file_name", f"book{n}.epub")
        fields.setdefault("file_hash", f"hash-{n}")
        record = CatalogRecord(library_id=library.id, **fields)
        with store.transaction():
            store.add_record(record)
        return store.get_record(record.id)  # type: ignore[arg-type]

    return _make
