# ABOUTME: Declarative table of every mergeable catalog field and its merge traits.
# ABOUTME: Drives generic lock/clear/replace handling instead of per-field setters.

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class ScalarField:
    """One scalar field shared by catalog records and candidate metadata.

    Attributes:
        name: Attribute name on both CatalogRecord and CandidateMetadata.
        kind: Python type of stored values.
        blank_to_none: Whether blank strings are stored as None.
        writes_to_file: Whether a change to this field warrants rewriting the book file.
    """

    name: str
    kind: type
    blank_to_none: bool = False
    writes_to_file: bool = True


SCALAR_FIELDS: tuple[ScalarField, ...] = (
    ScalarField("title", str, blank_to_none=True),
    ScalarField("subtitle", str, blank_to_none=True),
    ScalarField("publisher", str, blank_to_none=True),
    ScalarField("published_date", date),
    ScalarField("description", str, blank_to_none=True),
    ScalarField("series_name", str),
    ScalarField("series_number", float),
    ScalarField("series_total", int),
    ScalarField("isbn13", str, blank_to_none=True),
    ScalarField("isbn10", str, blank_to_none=True),
    ScalarField("asin", str, blank_to_none=True),
    ScalarField("goodreads_id", str, blank_to_none=True),
    ScalarField("comicvine_id", str, blank_to_none=True),
    ScalarField("hardcover_id", str, blank_to_none=True),
    ScalarField("hardcover_book_id", int),
    ScalarField("google_id", str, blank_to_none=True),
    ScalarField("page_count", int, writes_to_file=False),
    ScalarField("language", str, blank_to_none=True),
    ScalarField("amazon_rating", float, writes_to_file=False),
    ScalarField("amazon_review_count", int, writes_to_file=False),
    ScalarField("goodreads_rating", float, writes_to_file=False),
    ScalarField("goodreads_review_count", int, writes_to_file=False),
    ScalarField("hardcover_rating", float, writes_to_file=False),
    ScalarField("hardcover_review_count", int, writes_to_file=False),
)

SCALAR_FIELD_NAMES: tuple[str, ...] = tuple(f.name for f in SCALAR_FIELDS)

# Multi-valued taxonomy sets, each backed by a shared entity table.
COLLECTION_FIELDS: tuple[str, ...] = ("authors", "categories", "moods", "tags")

FILE_COLLECTION_FIELDS: frozenset[str] = frozenset({"authors", "categories"})

LOCKABLE_FIELDS: tuple[str, ...] = (*SCALAR_FIELD_NAMES, *COLLECTION_FIELDS, "reviews", "cover")

CLEARABLE_FIELDS: frozenset[str] = frozenset((*SCALAR_FIELD_NAMES, *COLLECTION_FIELDS, "reviews"))

_BY_NAME = {f.name: f for f in SCALAR_FIELDS}


def scalar_field(name: str) -> ScalarField:
    """Look up a scalar field by name.

    Raises:
        ValueError: If the name is not a scalar field.
    """
    try:
        return _BY_NAME[name]
    except KeyError:
        raise ValueError(f"Unknown field: {name}") from None


def coerce_value(name: str, raw: str) -> object:
    """Convert a user-supplied string into the stored type of a scalar field.

    Raises:
        ValueError: If the string cannot be converted.
    """
    field_def = scalar_field(name)
    if field_def.kind is str:
        return raw
    if field_def.kind is date:
        if len(raw) == 4 and raw.isdigit():
            return date(int(raw), 1, 1)
        return date.fromisoformat(raw)
    return field_def.kind(raw)
