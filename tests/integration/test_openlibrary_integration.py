# ABOUTME: Integration tests for refreshing imported books from the Open Library client.
# ABOUTME: Real client, parser, resolver, and merge engine; HTTP answered from canned responses.

import sqlite3
from datetime import date
from functools import partial
from pathlib import Path
from typing import Any

import pytest

from shelfkeeper.core.importer import import_books
from shelfkeeper.core.jobs import JobService
from shelfkeeper.core.refresh import RefreshRequest, RefreshType
from shelfkeeper.core.services import ServiceFactory
from shelfkeeper.db.catalog import CatalogStore, Library
from shelfkeeper.db.connection import open_catalog
from shelfkeeper.db.jobs import JobStatus
from shelfkeeper.metadata.openlibrary import OpenLibraryClient
from shelfkeeper.metadata.options import RefreshOptions
from shelfkeeper.metadata.provider import ProviderRegistry
from tests.fixtures.fakes import CannedHttpClient
from tests.fixtures.openlibrary_responses import (
    AUTHOR_RESPONSE,
    ISBN,
    ISBN_RESPONSE,
    WORKS_RESPONSE,
)

OL = "https://openlibrary.org"
NO_COVERS = RefreshOptions(refresh_covers=False)


def _responses() -> dict[str, Any]:
    return {
        f"{OL}/isbn/{ISBN}.json": ISBN_RESPONSE,
        f"{OL}/works/OL59863W.json": WORKS_RESPONSE,
        f"{OL}/authors/OL31353A.json": AUTHOR_RESPONSE,
    }


def _service(conn: sqlite3.Connection, db_path: Path, http: CannedHttpClient) -> JobService:
    factory = ServiceFactory(
        connect=partial(open_catalog, db_path),
        registry=ProviderRegistry([OpenLibraryClient(http)]),
        http_client=http,
        delay=lambda seconds: None,
    )
    return JobService(conn, factory)


class TestOpenLibraryRefresh:
    """Refresh through the real Open Library client."""

    def test_isbn_lookup_fills_missing_fields(
        self,
        conn: sqlite3.Connection,
        db_path: Path,
        store: CatalogStore,
        library: Library,
        sample_epub: Path,
    ) -> None:
        book_id = import_books([sample_epub], store, library).book_ids[0]
        http = CannedHttpClient(_responses())

        job = _service(conn, db_path, http).run(
            RefreshRequest(RefreshType.BOOKS, book_ids=(book_id,), options=NO_COVERS)
        )

        assert job.status is JobStatus.COMPLETED
        assert http.calls[0][0] == f"{OL}/isbn/{ISBN}.json"
        record = store.get_record(book_id)
        assert record.page_count == 304
        assert record.published_date == date(1987, 3, 1)
        assert "Science fiction" in record.categories
        # Values already on the book are kept.
        assert record.description == "An envoy visits Gethen."
        assert record.publisher == "Ace Books"

    def test_provider_failure_leaves_book_unchanged(
        self,
        conn: sqlite3.Connection,
        db_path: Path,
        store: CatalogStore,
        library: Library,
        sample_epub: Path,
    ) -> None:
        book_id = import_books([sample_epub], store, library).book_ids[0]
        before = store.get_record(book_id)

        job = _service(conn, db_path, CannedHttpClient({})).run(
            RefreshRequest(RefreshType.BOOKS, book_ids=(book_id,), options=NO_COVERS)
        )

        assert job.status is JobStatus.COMPLETED
        after = store.get_record(book_id)
        assert after.page_count is None
        assert after.title == before.title
        assert after.authors == before.authors

    @pytest.mark.parametrize("review", [True, False])
    def test_job_counts_the_book(
        self,
        conn: sqlite3.Connection,
        db_path: Path,
        store: CatalogStore,
        library: Library,
        sample_epub: Path,
        review: bool,
    ) -> None:
        import_books([sample_epub], store, library)
        options = RefreshOptions(refresh_covers=False, review_before_apply=review)

        job = _service(conn, db_path, CannedHttpClient(_responses())).run(
            RefreshRequest(RefreshType.LIBRARY, library_id=library.id, options=options)
        )

        assert (job.completed_items, job.total_items) == (1, 1)
        assert job.review_mode is review
