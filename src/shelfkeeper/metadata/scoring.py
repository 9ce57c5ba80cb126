# ABOUTME: Completeness match score for catalog records against a weighted checklist.
# ABOUTME: A field earns its weight when it holds a usable value or is locked.

from dataclasses import asdict, dataclass, fields
from typing import Any

from shelfkeeper.db.mapping import CatalogRecord


_POSITIVE_FIELDS = frozenset({
    "series_number",
    "series_total",
    "page_count",
    "amazon_rating",
    "amazon_review_count",
    "goodreads_rating",
    "goodreads_review_count",
    "hardcover_rating",
    "hardcover_review_count",
})


@dataclass(frozen=True)
class MatchWeights:
    """Per-field weights for the completeness score. Field names match CatalogRecord."""

    title: float = 10
    subtitle: float = 1
    description: float = 10
    authors: float = 10
    publisher: float = 5
    published_date: float = 3
    series_name: float = 2
    series_number: float = 2
    series_total: float = 1
    isbn13: float = 3
    isbn10: float = 5
    language: float = 2
    page_count: float = 1
    categories: float = 10
    amazon_rating: float = 3
    amazon_review_count: float = 2
    goodreads_rating: float = 4
    goodreads_review_count: float = 2
    hardcover_rating: float = 2
    hardcover_review_count: float = 1

    @property
    def total(self) -> float:
        return sum(getattr(self, f.name) for f in fields(self))

    def to_dict(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MatchWeights":
        known = {f.name for f in fields(cls)}
        return cls(**{k: float(v) for k, v in data.items() if k in known})


def _is_present(name: str, value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set)):
        return len(value) > 0
    if name in _POSITIVE_FIELDS:
        return value > 0
    return True


def score_record(record: CatalogRecord, weights: MatchWeights) -> float:
    """Compute a 0-100 completeness score for a record.

    Locked fields earn their weight even when empty. A zero total weight
    scores 0.
    """
    total = weights.total
    if total == 0:
        return 0.0

    earned = 0.0
    for f in fields(weights):
        weight = getattr(weights, f.name)
        if record.is_locked(f.name) or _is_present(f.name, getattr(record, f.name)):
            earned += weight

    return earned / total * 100.0
