# ABOUTME: EPUB metadata extraction (for import) and in-place writing (after merges) using ebooklib.
# ABOUTME: Unreadable or malformed files surface as EpubReadError instead of ebooklib internals.

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from ebooklib import epub

from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.metadata.http import HttpClient, MetadataFetchError
from shelfkeeper.metadata.types import CandidateMetadata, ClearFlags

logger = logging.getLogger(__name__)

_DC_NS = "http://purl.org/dc/elements/1.1/"
_OPF_NS = "http://www.idpf.org/2007/opf"
_COVER_ID = "cover-img"
_OPF_SCHEME = f"{{{_OPF_NS}}}scheme"


class EpubReadError(Exception):
    """Raised when an EPUB file cannot be read, parsed, or written."""


@runtime_checkable
class MetadataFileWriter(Protocol):
    """Embeds catalog metadata into a book file in place."""

    def supports(self, book_type: str) -> bool: ...

    def write_metadata(
        self,
        path: Path,
        record: CatalogRecord,
        thumbnail_url: str | None = None,
        clear: ClearFlags = ClearFlags(),
    ) -> None: ...


@dataclass
class EpubContents:
    """Metadata and cover bytes read from an EPUB."""

    metadata: CandidateMetadata
    cover_image: bytes | None = None


def _get_metadata_value(book: epub.EpubBook, namespace: str, name: str) -> str | None:
    """Extract a single metadata value from an EpubBook, or None if missing."""
    values = book.get_metadata(namespace, name)
    if not values:
        return None
    # Metadata entries are tuples of (value, attributes)
    value = values[0][0]
    return str(value).strip() if value else None


def _get_isbns(book: epub.EpubBook) -> tuple[str | None, str | None]:
    """Find ISBN-13 and ISBN-10 values among the DC identifiers."""
    isbn13 = isbn10 = None
    for value, _attrs in book.get_metadata("DC", "identifier"):
        if not value:
            continue
        cleaned = str(value).replace("-", "").replace(" ", "").removeprefix("urn:isbn:")
        if len(cleaned) == 13 and cleaned.isdigit():
            isbn13 = isbn13 or cleaned
        elif len(cleaned) == 10 and cleaned[:9].isdigit():
            isbn10 = isbn10 or cleaned
    return isbn13, isbn10


def _extract_cover_image(book: epub.EpubBook) -> bytes | None:
    """Extract cover image data from an EPUB, if present."""
    meta_entries = book.get_metadata("OPF", "cover")
    if meta_entries:
        cover_item = book.get_item_with_id(meta_entries[0][1].get("content"))
        if cover_item:
            return cover_item.get_content()

    for item in book.get_items():
        item_id = item.get_id() or ""
        item_name = item.get_name() or ""
        if "cover" in item_id.lower() or "cover" in item_name.lower():
            if item.get_type() == 3:  # ITEM_IMAGE
                return item.get_content()

    return None


def read_epub_metadata(path: Path) -> EpubContents:
    """Extract metadata and cover image from an EPUB file.

    Raises:
        EpubReadError: If the file cannot be read or parsed.
    """
    if not path.exists():
        raise EpubReadError(f"File not found: {path}")

    try:
        book = epub.read_epub(str(path), options={"ignore_ncx": True})
    except Exception as exc:
        raise EpubReadError(f"Failed to read EPUB: {path}: {exc}") from exc

    isbn13, isbn10 = _get_isbns(book)
    creators = book.get_metadata("DC", "creator")
    subjects = book.get_metadata("DC", "subject")

    metadata = CandidateMetadata(
        title=_get_metadata_value(book, "DC", "title") or path.stem,
        authors=tuple(str(entry[0]).strip() for entry in creators if entry[0]),
        language=_get_metadata_value(book, "DC", "language"),
        publisher=_get_metadata_value(book, "DC", "publisher"),
        description=_get_metadata_value(book, "DC", "description"),
        categories=tuple(str(entry[0]).strip() for entry in subjects if entry[0]),
        isbn13=isbn13,
        isbn10=isbn10,
    )
    return EpubContents(metadata=metadata, cover_image=_extract_cover_image(book))


def _fix_toc_uids(book: epub.EpubBook) -> None:
    """Assign uids to TOC Link items that are missing them.

    ebooklib sometimes reads TOC entries without preserving the uid attribute,
    which causes lxml to fail when writing the NCX.
    """
    for i, item in enumerate(book.toc):
        if isinstance(item, epub.Link) and not item.uid:
            item.uid = f"navpoint-{i}"
        elif isinstance(item, tuple) and len(item) == 2:
            section, children = item
            if isinstance(section, epub.Link) and not section.uid:
                section.uid = f"navpoint-section-{i}"
            for j, child in enumerate(children):
                if isinstance(child, epub.Link) and not child.uid:
                    child.uid = f"navpoint-{i}-{j}"


def _clear_dc(book: epub.EpubBook, name: str) -> None:
    book.metadata.setdefault(_DC_NS, {})
    book.metadata[_DC_NS].pop(name, None)


def _set_dc(book: epub.EpubBook, name: str, value: str | None, cleared: bool) -> None:
    """Replace a DC value; None leaves the file as is unless the field was cleared."""
    if value is None and not cleared:
        return
    _clear_dc(book, name)
    if value is not None:
        book.add_metadata("DC", name, value)


def _set_isbns(book: epub.EpubBook, record: CatalogRecord, clear: ClearFlags) -> None:
    """Rewrite ISBN identifiers, keeping the package's unique identifier intact."""
    book.metadata.setdefault(_DC_NS, {})
    entries = book.metadata[_DC_NS].get("identifier", [])
    kept = []
    for value, attrs in entries:
        attrs = attrs or {}
        scheme = attrs.get(_OPF_SCHEME) or attrs.get("opf:scheme") or attrs.get("scheme", "")
        is_isbn = scheme.lower() == "isbn" and attrs.get("id") != book.IDENTIFIER_ID
        if not is_isbn:
            kept.append((value, attrs))
    book.metadata[_DC_NS]["identifier"] = kept
    for name in ("isbn13", "isbn10"):
        value = getattr(record, name)
        if value and name not in clear:
            book.add_metadata("DC", "identifier", value, {_OPF_SCHEME: "ISBN"})


def _set_series(book: epub.EpubBook, record: CatalogRecord) -> None:
    """Write calibre-style series meta tags, replacing existing ones."""
    # Series metas read from disk sit under a "calibre" namespace; added ones under None.
    calibre = book.metadata.get("calibre", {})
    calibre.pop("series", None)
    calibre.pop("series_index", None)
    for namespace in (_OPF_NS, None):
        if namespace not in book.metadata:
            continue
        metas = book.metadata[namespace].get("meta", [])
        book.metadata[namespace]["meta"] = [
            (value, attrs)
            for value, attrs in metas
            if (attrs or {}).get("name") not in ("calibre:series", "calibre:series_index")
        ]
    if record.series_name:
        book.add_metadata(None, "meta", "", {"name": "calibre:series", "content": record.series_name})
        if record.series_number is not None:
            book.add_metadata(
                None,
                "meta",
                "",
                {"name": "calibre:series_index", "content": f"{record.series_number:g}"},
            )


class EpubMetadataWriter:
    """Writes catalog metadata into EPUB files in place.

    Content and structure are preserved. When an HTTP client is supplied,
    a thumbnail URL is downloaded and embedded as the cover image.
    """

    def __init__(self, http_client: HttpClient | None = None) -> None:
        self._http = http_client

    def supports(self, book_type: str) -> bool:
        return book_type.upper() == "EPUB"

    def write_metadata(
        self,
        path: Path,
        record: CatalogRecord,
        thumbnail_url: str | None = None,
        clear: ClearFlags = ClearFlags(),
    ) -> None:
        """Write the record's file-relevant fields into the EPUB at ``path``.

        Raises:
            EpubReadError: If the file cannot be read or written.
        """
        if not path.exists():
            raise EpubReadError(f"File not found: {path}")

        try:
            book = epub.read_epub(str(path))
        except Exception as exc:
            raise EpubReadError(f"Failed to read EPUB: {path}: {exc}") from exc

        _set_dc(book, "title", record.title, "title" in clear)
        _set_dc(book, "language", record.language, "language" in clear)
        _set_dc(book, "publisher", record.publisher, "publisher" in clear)
        _set_dc(book, "description", record.description, "description" in clear)
        published = record.published_date.isoformat() if record.published_date else None
        _set_dc(book, "date", published, "published_date" in clear)

        if record.authors or "authors" in clear:
            _clear_dc(book, "creator")
            for author in record.authors:
                book.add_author(author)

        if record.categories or "categories" in clear:
            _clear_dc(book, "subject")
            for category in record.categories:
                book.add_metadata("DC", "subject", category)

        _set_isbns(book, record, clear)
        _set_series(book, record)

        if thumbnail_url and self._http is not None:
            self._embed_cover(book, thumbnail_url)

        _fix_toc_uids(book)

        try:
            epub.write_epub(str(path), book)
        except Exception as exc:
            raise EpubReadError(f"Failed to write EPUB: {path}: {exc}") from exc

    def _embed_cover(self, book: epub.EpubBook, url: str) -> None:
        try:
            image = self._http.get_bytes(url)  # type: ignore[union-attr]
        except MetadataFetchError as exc:
            logger.warning("Could not download cover %s: %s", url, exc)
            return
        existing = book.get_item_with_id(_COVER_ID)
        if existing is not None:
            existing.set_content(image)
        else:
            book.set_cover("cover.jpg", image, create_page=False)
