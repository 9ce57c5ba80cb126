# ABOUTME: Unit tests for writing catalog metadata back into EPUB files.
# ABOUTME: Round-trips written fields through the reader and checks clear handling and cover embedding.

from datetime import date
from pathlib import Path

import pytest
from ebooklib import epub

from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.formats.epub import (
    EpubMetadataWriter,
    EpubReadError,
    MetadataFileWriter,
    read_epub_metadata,
)
from shelfkeeper.metadata.types import ClearFlags

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 64


class BytesHttpClient:
    """HttpClient returning fixed image bytes."""

    def __init__(self) -> None:
        self.urls: list[str] = []

    def get(self, url: str, params=None) -> dict:
        return {}

    def get_bytes(self, url: str) -> bytes:
        self.urls.append(url)
        return JPEG


class TestEpubMetadataWriter:
    """Tests for EpubMetadataWriter."""

    def test_satisfies_protocol(self) -> None:
        writer = EpubMetadataWriter()
        assert isinstance(writer, MetadataFileWriter)
        assert writer.supports("epub")
        assert not writer.supports("PDF")

    def test_written_fields_read_back(self, sample_epub: Path) -> None:
        record = CatalogRecord(
            title="The Dispossessed",
            authors=["Ursula K. Le Guin", "Second Author"],
            categories=["Science fiction"],
            publisher="Harper & Row",
            published_date=date(1974, 5, 1),
            isbn13="9780060125639",
            series_name="Hainish Cycle",
            series_number=5.0,
        )
        EpubMetadataWriter().write_metadata(sample_epub, record)

        metadata = read_epub_metadata(sample_epub).metadata
        assert metadata.title == "The Dispossessed"
        assert metadata.authors == ("Ursula K. Le Guin", "Second Author")
        assert metadata.categories == ("Science fiction",)
        assert metadata.publisher == "Harper & Row"

    def test_isbn_identifiers_replaced(self, sample_epub: Path) -> None:
        """New ISBNs are added beside the package identifier, which is kept."""
        record = CatalogRecord(title="Dispossessed", isbn13="9780060125639", isbn10="0060125632")
        EpubMetadataWriter().write_metadata(sample_epub, record)

        book = epub.read_epub(str(sample_epub))
        values = [value for value, _attrs in book.get_metadata("DC", "identifier")]
        assert "urn:isbn:9780441478125" in values
        assert "9780060125639" in values
        assert "0060125632" in values

    def test_series_written_as_calibre_meta(self, sample_epub: Path) -> None:
        record = CatalogRecord(title="x", series_name="Hainish Cycle", series_number=5.0)
        EpubMetadataWriter().write_metadata(sample_epub, record)

        book = epub.read_epub(str(sample_epub))
        [(_value, series)] = book.get_metadata("calibre", "series")
        [(_value, index)] = book.get_metadata("calibre", "series_index")
        assert series["content"] == "Hainish Cycle"
        assert index["content"] == "5"

    def test_series_rewrite_replaces_previous(self, sample_epub: Path) -> None:
        writer = EpubMetadataWriter()
        writer.write_metadata(sample_epub, CatalogRecord(series_name="Old", series_number=1.0))
        writer.write_metadata(sample_epub, CatalogRecord(series_name="New", series_number=2.0))

        book = epub.read_epub(str(sample_epub))
        assert [attrs["content"] for _v, attrs in book.get_metadata("calibre", "series")] == ["New"]

    def test_absent_values_leave_file_alone(self, sample_epub: Path) -> None:
        EpubMetadataWriter().write_metadata(sample_epub, CatalogRecord(title="New Title"))
        metadata = read_epub_metadata(sample_epub).metadata
        assert metadata.title == "New Title"
        assert metadata.publisher == "Ace Books"
        assert metadata.authors == ("Ursula K. Le Guin",)

    def test_cleared_values_removed(self, sample_epub: Path) -> None:
        record = CatalogRecord(title="Kept")
        EpubMetadataWriter().write_metadata(
            sample_epub, record, clear=ClearFlags.of("publisher", "description")
        )
        metadata = read_epub_metadata(sample_epub).metadata
        assert metadata.publisher is None
        assert metadata.description is None

    def test_cover_embedded_from_url(self, sample_epub: Path) -> None:
        http = BytesHttpClient()
        writer = EpubMetadataWriter(http)
        writer.write_metadata(
            sample_epub, CatalogRecord(title="Covered"), "https://covers.example/1.jpg"
        )
        assert http.urls == ["https://covers.example/1.jpg"]
        assert read_epub_metadata(sample_epub).cover_image == JPEG

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(EpubReadError, match="File not found"):
            EpubMetadataWriter().write_metadata(tmp_path / "gone.epub", CatalogRecord())

    def test_corrupt_file(self, corrupt_epub: Path) -> None:
        with pytest.raises(EpubReadError):
            EpubMetadataWriter().write_metadata(corrupt_epub, CatalogRecord(title="x"))
