# ABOUTME: Open Library provider client producing CandidateMetadata for a book hint.
# ABOUTME: Looks up by ISBN first (most precise) and falls back to title/author search.

import logging
import re
from typing import Any

from shelfkeeper.metadata.http import HttpClient, MetadataFetchError
from shelfkeeper.metadata.openlibrary_parser import (
    parse_author_name,
    parse_edition_response,
    parse_search_results,
    parse_works_response,
    parse_works_subjects,
)
from shelfkeeper.metadata.provider import BookHint
from shelfkeeper.metadata.types import CandidateMetadata, MetadataProvider

logger = logging.getLogger(__name__)

_OL_BASE = "https://openlibrary.org"
_ENRICH_LIMIT = 3

# Matches a colon followed by a space and remaining text (subtitle pattern).
_SUBTITLE_RE = re.compile(r"\s*:\s+.+$")

# Keys produced by the parser that are not CandidateMetadata fields.
_INTERNAL_KEYS = ("works_key", "author_keys")


def _strip_subtitle(title: str) -> str | None:
    """Remove subtitle from a title string (text after ": ").

    Returns the stripped title, or None if no subtitle was found or
    stripping would produce an identical or empty string.
    """
    stripped = _SUBTITLE_RE.sub("", title).strip()
    if stripped and stripped != title.strip():
        return stripped
    return None


class OpenLibraryClient:
    """Metadata provider client backed by the Open Library API.

    Uses dependency-injected HttpClient for testability.
    """

    def __init__(self, http_client: HttpClient) -> None:
        self._http = http_client

    @property
    def provider(self) -> MetadataProvider:
        return MetadataProvider.OPEN_LIBRARY

    def fetch_top_candidate(self, hint: BookHint) -> CandidateMetadata | None:
        """Return the single best candidate for a book, or None."""
        if hint.isbn:
            candidate = self._lookup_isbn(hint.isbn)
            if candidate is not None:
                return candidate
        if not hint.title:
            return None
        results = self._search(hint.title, hint.authors[0] if hint.authors else None, 1)
        return results[0] if results else None

    def fetch_candidates(self, hint: BookHint, limit: int = 5) -> list[CandidateMetadata]:
        """Return up to ``limit`` candidates, the ISBN match (if any) first."""
        candidates: list[CandidateMetadata] = []
        if hint.isbn:
            by_isbn = self._lookup_isbn(hint.isbn)
            if by_isbn is not None:
                candidates.append(by_isbn)
        if hint.title and len(candidates) < limit:
            author = hint.authors[0] if hint.authors else None
            for candidate in self._search(hint.title, author, limit):
                if candidate.isbn13 and any(c.isbn13 == candidate.isbn13 for c in candidates):
                    continue
                candidates.append(candidate)
        return candidates[:limit]

    def _lookup_isbn(self, isbn: str) -> CandidateMetadata | None:
        """Look up an edition by ISBN and enrich it from works and author endpoints."""
        clean_isbn = re.sub(r"[\s-]", "", isbn)
        try:
            data = self._http.get(f"{_OL_BASE}/isbn/{clean_isbn}.json")
        except MetadataFetchError as exc:
            logger.warning("ISBN lookup failed for %s: %s", isbn, exc)
            return None

        fields = parse_edition_response(data)
        self._enrich_from_works(fields)
        self._enrich_authors(fields)
        return self._to_candidate(fields)

    def _search(
        self, title: str, author: str | None, limit: int
    ) -> list[CandidateMetadata]:
        """Search by title and author, retrying without a subtitle on no results."""
        results = self._search_ol(title, author, limit)
        if not results:
            stripped = _strip_subtitle(title)
            if stripped:
                results = self._search_ol(stripped, author, limit)
        return results

    def _search_ol(
        self, title: str, author: str | None, limit: int
    ) -> list[CandidateMetadata]:
        params: dict[str, str] = {"title": title, "limit": str(limit)}
        if author:
            params["author"] = author

        try:
            data = self._http.get(f"{_OL_BASE}/search.json", params=params)
        except MetadataFetchError as exc:
            logger.warning("Search failed for title=%s author=%s: %s", title, author, exc)
            return []

        results = parse_search_results(data)
        for fields in results[:_ENRICH_LIMIT]:
            self._enrich_from_works(fields)
        return [self._to_candidate(fields) for fields in results]

    def _enrich_from_works(self, fields: dict[str, Any]) -> None:
        """Fill description and categories from the works endpoint.

        MUTATES fields in place. Enrichment failures are ignored.
        """
        works_key = fields.get("works_key")
        if not works_key:
            return
        try:
            works_data = self._http.get(f"{_OL_BASE}{works_key}.json")
        except MetadataFetchError:
            return
        description = parse_works_response(works_data)
        if description and not fields.get("description"):
            fields["description"] = description
        if not fields.get("categories"):
            fields["categories"] = parse_works_subjects(works_data)

    def _enrich_authors(self, fields: dict[str, Any]) -> None:
        """Resolve author keys to names via the authors endpoint. MUTATES fields."""
        authors: list[str] = []
        for author_key in fields.get("author_keys", []):
            try:
                author_data = self._http.get(f"{_OL_BASE}{author_key}.json")
            except MetadataFetchError:
                continue
            authors.append(parse_author_name(author_data))
        if authors:
            fields["authors"] = tuple(authors)

    def _to_candidate(self, fields: dict[str, Any]) -> CandidateMetadata:
        kwargs = {k: v for k, v in fields.items() if k not in _INTERNAL_KEYS}
        return CandidateMetadata(provider=self.provider, **kwargs)
