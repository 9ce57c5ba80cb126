# ABOUTME: Field resolution across provider candidates by configured authority order.
# ABOUTME: Builds one merged CandidateMetadata from the per-provider fetch results.

import logging
from collections.abc import Callable, Collection, Mapping
from typing import Any

from shelfkeeper.metadata.options import AUTHORITY_FIELDS, FieldAuthority, RefreshOptions
from shelfkeeper.metadata.types import BookReview, CandidateMetadata, MetadataProvider

logger = logging.getLogger(__name__)

Candidates = Mapping[MetadataProvider, CandidateMetadata]

# Fields each provider owns outright; taken from that provider without an authority walk.
PROVIDER_NATIVE_FIELDS: dict[MetadataProvider, tuple[str, ...]] = {
    MetadataProvider.AMAZON: ("amazon_rating", "amazon_review_count", "asin"),
    MetadataProvider.GOODREADS: ("goodreads_rating", "goodreads_review_count", "goodreads_id"),
    MetadataProvider.HARDCOVER: (
        "hardcover_rating",
        "hardcover_review_count",
        "hardcover_id",
        "moods",
        "tags",
    ),
    MetadataProvider.GOOGLE: ("google_id",),
    MetadataProvider.COMICVINE: ("comicvine_id",),
}


def is_valid(value: Any) -> bool:
    """A value is usable when non-null, non-blank for strings, non-empty for collections."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, frozenset)):
        return len(value) > 0
    return True


def _extractor(field: str) -> Callable[[CandidateMetadata], Any]:
    attr = "thumbnail_url" if field == "cover" else field
    return lambda candidate: getattr(candidate, attr)


def resolve(authority: FieldAuthority, candidates: Candidates, field: str) -> Any:
    """Return the first valid value for ``field`` walking the authority order.

    Returns None when no listed provider supplied a valid value.
    """
    extract = _extractor(field)
    for provider in authority:
        candidate = candidates.get(provider)
        if candidate is None:
            continue
        value = extract(candidate)
        if is_valid(value):
            return value
    return None


def resolve_union(
    authority: FieldAuthority, candidates: Candidates, field: str
) -> tuple[str, ...]:
    """Union the valid values of a collection field across every authority provider.

    Order follows the authority order, then each provider's own order.
    """
    extract = _extractor(field)
    merged: list[str] = []
    for provider in authority:
        candidate = candidates.get(provider)
        if candidate is None:
            continue
        for value in extract(candidate) or ():
            if is_valid(value) and value not in merged:
                merged.append(value)
    return tuple(merged)


def build_resolved_metadata(
    book_id: int | None, options: RefreshOptions, candidates: Candidates
) -> CandidateMetadata:
    """Resolve every enabled field into one CandidateMetadata for a book.

    Authority fields walk their configured provider order. Provider-native
    fields come only from their owning provider. Reviews from every
    candidate are collected.
    """
    values: dict[str, Any] = {}
    for field in AUTHORITY_FIELDS:
        if not options.is_enabled(field):
            continue
        authority = options.authority(field)
        if field == "categories" and options.merge_categories:
            value = resolve_union(authority, candidates, field)
        else:
            value = resolve(authority, candidates, field)
        if value is None:
            continue
        if field == "cover":
            values["thumbnail_url"] = value
        elif field in ("authors", "categories"):
            values[field] = tuple(value)
        else:
            values[field] = value

    for provider, native_fields in PROVIDER_NATIVE_FIELDS.items():
        candidate = candidates.get(provider)
        if candidate is None:
            continue
        for field in native_fields:
            if options.is_enabled(field):
                values[field] = getattr(candidate, field)
        if provider is MetadataProvider.HARDCOVER and options.is_enabled("hardcover_id"):
            values["hardcover_book_id"] = candidate.hardcover_book_id

    reviews: list[BookReview] = []
    for candidate in candidates.values():
        reviews.extend(candidate.reviews)
    if reviews:
        values["reviews"] = tuple(reviews)

    logger.debug("Resolved %d field(s) for book %s", len(values), book_id)
    return CandidateMetadata(**values)


def prepare_providers(
    options: RefreshOptions, enabled: Collection[MetadataProvider]
) -> list[MetadataProvider]:
    """Distinct providers named by any field authority that are also enabled.

    Returned in declaration order of MetadataProvider so fetch order is stable.
    """
    named: set[MetadataProvider] = set()
    for authority in options.field_options.values():
        named.update(authority)
    return [p for p in MetadataProvider if p in named and p in enabled]
