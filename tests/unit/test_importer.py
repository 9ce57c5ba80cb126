# ABOUTME: Unit tests for the EPUB import pipeline.
# ABOUTME: Validates record creation, subfolder paths, duplicate skipping, error capture, and scoring.

from pathlib import Path

from shelfkeeper.core.importer import find_epubs, import_books
from shelfkeeper.db.catalog import CatalogStore, Library
from shelfkeeper.metadata.scoring import MatchWeights
from tests.fixtures.fakes import FakeThumbnails


class TestFindEpubs:
    """Tests for find_epubs."""

    def test_recursive_and_sorted(
        self, library_root: Path, sample_epub: Path, minimal_epub: Path
    ) -> None:
        (library_root / "notes.txt").write_text("x")
        assert find_epubs(library_root) == sorted([sample_epub, minimal_epub])

    def test_empty_directory(self, tmp_path: Path) -> None:
        assert find_epubs(tmp_path) == []


class TestImportBooks:
    """Tests for import_books."""

    def test_adds_record_from_epub(
        self, store: CatalogStore, library: Library, sample_epub: Path
    ) -> None:
        result = import_books([sample_epub], store, library)
        assert result.added == 1
        record = store.get_record(result.book_ids[0])
        assert record.title == "The Left Hand of Darkness"
        assert record.authors == ["Ursula K. Le Guin"]
        assert record.isbn13 == "9780441478125"
        assert record.publisher == "Ace Books"
        assert record.file_name == "left_hand.epub"
        assert record.file_sub_path == ""
        assert record.library_id == library.id
        assert record.match_score is not None and record.match_score > 0

    def test_subfolder_recorded(
        self, store: CatalogStore, library: Library, minimal_epub: Path
    ) -> None:
        result = import_books([minimal_epub], store, library)
        record = store.get_record(result.book_ids[0])
        assert record.file_sub_path == "misc"
        assert store.book_path(record) == minimal_epub

    def test_duplicate_skipped(
        self, store: CatalogStore, library: Library, sample_epub: Path
    ) -> None:
        import_books([sample_epub], store, library)
        result = import_books([sample_epub], store, library)
        assert result.added == 0
        assert result.skipped == 1
        assert len(store.all_ids()) == 1

    def test_corrupt_file_recorded_as_error(
        self,
        store: CatalogStore,
        library: Library,
        sample_epub: Path,
        corrupt_epub: Path,
    ) -> None:
        result = import_books([corrupt_epub, sample_epub], store, library)
        assert result.added == 1
        assert result.errors == 1
        assert result.error_details[0][0] == corrupt_epub

    def test_missing_file_recorded_as_error(
        self, store: CatalogStore, library: Library, library_root: Path
    ) -> None:
        result = import_books([library_root / "gone.epub"], store, library)
        assert result.errors == 1

    def test_file_outside_library_is_error(
        self, store: CatalogStore, library: Library, tmp_path: Path, sample_epub: Path
    ) -> None:
        outside = tmp_path / "elsewhere.epub"
        outside.write_bytes(sample_epub.read_bytes() + b"\x00")
        result = import_books([outside], store, library)
        assert result.errors == 1
        assert result.added == 0

    def test_uses_given_weights(
        self, store: CatalogStore, library: Library, minimal_epub: Path
    ) -> None:
        weights = MatchWeights(**{name: 0 for name in MatchWeights().to_dict()} | {"title": 1})
        result = import_books([minimal_epub], store, library, weights=weights)
        assert store.get_record(result.book_ids[0]).match_score == 100.0

    def test_without_cover_no_thumbnail(
        self, store: CatalogStore, library: Library, sample_epub: Path
    ) -> None:
        covers = FakeThumbnails()
        result = import_books([sample_epub], store, library, covers=covers)
        assert store.get_record(result.book_ids[0]).cover_path is None
