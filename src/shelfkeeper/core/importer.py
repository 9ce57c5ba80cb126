# ABOUTME: Import pipeline registering EPUB files of a library as catalog records.
# ABOUTME: Reads embedded metadata, hashes files, skips duplicates, stores covers and scores.

import logging
from dataclasses import dataclass, field
from pathlib import Path

from shelfkeeper.db.catalog import CatalogStore, DuplicateBookError, Library
from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.files.covers import ThumbnailService
from shelfkeeper.files.hashing import compute_file_hash
from shelfkeeper.formats.epub import EpubReadError, read_epub_metadata
from shelfkeeper.metadata.scoring import MatchWeights, score_record

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Summary of an import operation."""

    added: int = 0
    skipped: int = 0
    errors: int = 0
    book_ids: list[int] = field(default_factory=list)
    error_details: list[tuple[Path, str]] = field(default_factory=list)


def find_epubs(directory: Path) -> list[Path]:
    """Recursively find all .epub files in a directory."""
    return sorted(directory.rglob("*.epub"))


def _record_for(
    path: Path, library: Library, file_hash: str
) -> tuple[CatalogRecord, bytes | None]:
    contents = read_epub_metadata(path)
    metadata = contents.metadata
    relative = path.resolve().relative_to(library.root_path.resolve())
    sub_path = relative.parent.as_posix()
    return CatalogRecord(
        library_id=library.id,
        file_name=path.name,
        file_sub_path="" if sub_path == "." else sub_path,
        book_type="EPUB",
        file_hash=file_hash,
        title=metadata.title,
        publisher=metadata.publisher,
        description=metadata.description,
        language=metadata.language,
        isbn13=metadata.isbn13,
        isbn10=metadata.isbn10,
        authors=list(dict.fromkeys(metadata.authors)),
        categories=list(dict.fromkeys(metadata.categories)),
    ), contents.cover_image


def import_books(
    paths: list[Path],
    store: CatalogStore,
    library: Library,
    *,
    weights: MatchWeights | None = None,
    covers: ThumbnailService | None = None,
) -> ImportResult:
    """Catalog EPUB files that live under a library's root.

    Each file is committed on its own. Duplicate files (same hash) are
    skipped and unreadable files recorded as errors.

    Returns:
        ImportResult with counts of added, skipped, and errored files.
    """
    result = ImportResult()
    weights = weights or MatchWeights()

    for epub_path in paths:
        try:
            file_hash = compute_file_hash(epub_path)
        except OSError as exc:
            result.errors += 1
            result.error_details.append((epub_path, str(exc)))
            continue

        if store.get_by_hash(file_hash) is not None:
            result.skipped += 1
            continue

        try:
            record, cover_image = _record_for(epub_path, library, file_hash)
        except (EpubReadError, ValueError) as exc:
            result.errors += 1
            result.error_details.append((epub_path, str(exc)))
            continue

        try:
            with store.transaction():
                record.authors = [store.resolve_or_create("authors", a) for a in record.authors]
                record.categories = [
                    store.resolve_or_create("categories", c) for c in record.categories
                ]
                record.match_score = score_record(record, weights)
                book_id = store.add_record(record)
                if cover_image and covers is not None:
                    _store_cover(covers, record, cover_image)
                    store.save_record(record)
        except DuplicateBookError:
            # Another process inserted the same file meanwhile
            result.skipped += 1
            continue

        result.added += 1
        result.book_ids.append(book_id)
        logger.debug("Imported %s as book %d", epub_path.name, book_id)

    return result


def _store_cover(covers: ThumbnailService, record: CatalogRecord, data: bytes) -> None:
    try:
        record.cover_path = str(covers.create_from_bytes(record.id, data))  # type: ignore[arg-type]
    except Exception as exc:
        logger.warning("Could not store embedded cover of %s: %s", record.file_name, exc)
