# ABOUTME: Unit tests for EPUB metadata extraction used by import.
# ABOUTME: Reads titles, authors, ISBNs, and publishers from real generated EPUB files.

from pathlib import Path

import pytest

from shelfkeeper.formats.epub import EpubReadError, read_epub_metadata


class TestReadEpubMetadata:
    """Tests for read_epub_metadata."""

    def test_reads_core_fields(self, sample_epub: Path) -> None:
        metadata = read_epub_metadata(sample_epub).metadata
        assert metadata.title == "The Left Hand of Darkness"
        assert metadata.authors == ("Ursula K. Le Guin",)
        assert metadata.language == "en"
        assert metadata.publisher == "Ace Books"
        assert metadata.description == "An envoy visits Gethen."

    def test_isbn_from_identifier(self, sample_epub: Path) -> None:
        metadata = read_epub_metadata(sample_epub).metadata
        assert metadata.isbn13 == "9780441478125"
        assert metadata.isbn10 is None

    def test_minimal_epub(self, minimal_epub: Path) -> None:
        contents = read_epub_metadata(minimal_epub)
        assert contents.metadata.title == "Untitled Book"
        assert contents.metadata.authors == ()
        assert contents.metadata.isbn13 is None
        assert contents.cover_image is None

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(EpubReadError, match="File not found"):
            read_epub_metadata(tmp_path / "nope.epub")

    def test_corrupt_file(self, corrupt_epub: Path) -> None:
        with pytest.raises(EpubReadError, match="Failed to read EPUB"):
            read_epub_metadata(corrupt_epub)
