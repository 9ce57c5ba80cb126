# ABOUTME: Parsing functions for Open Library API JSON responses.
# ABOUTME: Converts OL-specific data structures into CandidateMetadata field dicts.

from datetime import date, datetime
from typing import Any

_COVERS_BASE_URL = "https://covers.openlibrary.org/b/id"
_SUBJECT_LIMIT = 5

_DATE_FORMATS = ("%Y-%m-%d", "%B %d, %Y", "%b %d, %Y", "%d %B %Y", "%B %Y", "%b %Y")


def parse_publish_date(raw: str | None) -> date | None:
    """Parse the free-form OL publish_date string.

    OL dates range from "1983" to "March 5, 1983". Year-only values map to
    January 1st. Unparseable values return None.
    """
    if not raw:
        return None
    text = raw.strip()
    if len(text) == 4 and text.isdigit():
        return date(int(text), 1, 1)
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _language_code(key: str) -> str:
    return key.rsplit("/", 1)[-1] if "/" in key else key


def _split_isbns(isbns: list[str]) -> tuple[str | None, str | None]:
    isbn13 = next((i for i in isbns if len(i) == 13), None)
    isbn10 = next((i for i in isbns if len(i) == 10), None)
    return isbn13, isbn10


def parse_edition_response(data: dict[str, Any]) -> dict[str, Any]:
    """Parse an Open Library edition (or ISBN endpoint) response.

    Returns a dict of CandidateMetadata keyword arguments. The works key,
    if present, is returned under ``works_key`` for follow-up enrichment.
    """
    publishers = data.get("publishers", [])
    isbn_13 = data.get("isbn_13", [])
    isbn_10 = data.get("isbn_10", [])
    languages = data.get("languages", [])
    covers = [c for c in data.get("covers", []) if isinstance(c, int) and c > 0]
    works = data.get("works", [])

    return {
        "title": data.get("title"),
        "subtitle": data.get("subtitle"),
        "publisher": publishers[0] if publishers else None,
        "published_date": parse_publish_date(data.get("publish_date")),
        "isbn13": isbn_13[0] if isbn_13 else None,
        "isbn10": isbn_10[0] if isbn_10 else None,
        "page_count": data.get("number_of_pages"),
        "language": _language_code(languages[0].get("key", "")) if languages else None,
        "thumbnail_url": build_cover_url(covers[0]) if covers else None,
        "works_key": works[0].get("key") if works else None,
        "author_keys": [a.get("key") for a in data.get("authors", []) if a.get("key")],
    }


def parse_works_response(data: dict[str, Any]) -> str | None:
    """Extract the description from an Open Library Works response.

    Handles the OL quirk where description can be either a plain string
    or a dict with {"type": ..., "value": "actual text"}.
    """
    desc = data.get("description")
    if desc is None:
        return None
    if isinstance(desc, str):
        return desc
    if isinstance(desc, dict):
        return desc.get("value")
    return None


def parse_works_subjects(data: dict[str, Any]) -> tuple[str, ...]:
    """Return the first few subjects of a works response as categories."""
    return tuple(data.get("subjects", [])[:_SUBJECT_LIMIT])


def parse_author_name(data: dict[str, Any]) -> str:
    """Extract the author name from an Open Library Author response."""
    return data.get("name", "Unknown")


def parse_search_results(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Parse an Open Library Search API response into candidate field dicts.

    Each doc in the search results contains title, author_name, isbn, etc.
    """
    results: list[dict[str, Any]] = []

    for doc in data.get("docs", []):
        isbn13, isbn10 = _split_isbns(doc.get("isbn", []))
        languages = doc.get("language", [])
        publishers = doc.get("publisher", [])
        year = doc.get("first_publish_year")
        cover_id = doc.get("cover_i")

        results.append(
            {
                "title": doc.get("title"),
                "subtitle": doc.get("subtitle"),
                "authors": tuple(doc.get("author_name", [])),
                "isbn13": isbn13,
                "isbn10": isbn10,
                "language": languages[0] if languages else None,
                "publisher": publishers[0] if publishers else None,
                "published_date": date(year, 1, 1) if isinstance(year, int) else None,
                "page_count": doc.get("number_of_pages_median"),
                "categories": tuple(doc.get("subject", [])[:_SUBJECT_LIMIT]),
                "thumbnail_url": build_cover_url(cover_id) if cover_id else None,
                "works_key": doc.get("key"),
            }
        )

    return results


def build_cover_url(cover_id: int, size: str = "L") -> str:
    """Build an Open Library cover image URL for a cover id.

    Args:
        cover_id: The numeric OL cover id.
        size: Image size: "S" (small), "M" (medium), or "L" (large).
    """
    return f"{_COVERS_BASE_URL}/{cover_id}-{size}.jpg"
