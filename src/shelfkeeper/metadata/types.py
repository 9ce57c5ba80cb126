# ABOUTME: Core metadata data structures shared by providers, resolution, and merging.
# ABOUTME: CandidateMetadata is the interchange format between fetch, resolve, and apply.

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any


class UnknownProviderError(ValueError):
    """Raised when a provider name does not match any known metadata provider."""


class MetadataProvider(str, Enum):
    """External bibliographic sources that can supply candidate metadata."""

    AMAZON = "Amazon"
    GOOGLE = "Google"
    GOODREADS = "GoodReads"
    HARDCOVER = "Hardcover"
    COMICVINE = "Comicvine"
    DOUBAN = "Douban"
    OPEN_LIBRARY = "OpenLibrary"

    @classmethod
    def parse(cls, value: "str | MetadataProvider") -> "MetadataProvider":
        """Look up a provider by value or member name, case-insensitively.

        Raises:
            UnknownProviderError: If no provider matches.
        """
        if isinstance(value, MetadataProvider):
            return value
        wanted = value.strip().lower().replace("_", "")
        for provider in cls:
            if wanted in (provider.value.lower(), provider.name.lower().replace("_", "")):
                return provider
        raise UnknownProviderError(f"Unknown metadata provider: {value}")


# Sources known to throttle aggressively; batch jobs pause between books that use them.
RATE_LIMITED_PROVIDERS = frozenset({MetadataProvider.GOODREADS})


class ReplaceMode(str, Enum):
    """How a resolved value treats data already present on a record.

    Absence of a mode (None) is the direct-edit path: any supplied value wins.
    """

    REPLACE_ALL = "REPLACE_ALL"
    REPLACE_MISSING = "REPLACE_MISSING"


@dataclass(frozen=True)
class BookReview:
    """A single review scraped from a provider."""

    provider: MetadataProvider | None
    reviewer: str | None = None
    title: str | None = None
    body: str | None = None
    rating: float | None = None
    date: datetime | None = None
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value if self.provider else None,
            "reviewer": self.reviewer,
            "title": self.title,
            "body": self.body,
            "rating": self.rating,
            "date": self.date.isoformat() if self.date else None,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BookReview":
        provider = data.get("provider")
        when = data.get("date")
        return cls(
            provider=MetadataProvider.parse(provider) if provider else None,
            reviewer=data.get("reviewer"),
            title=data.get("title"),
            body=data.get("body"),
            rating=data.get("rating"),
            date=datetime.fromisoformat(when) if when else None,
            url=data.get("url"),
        )


@dataclass(frozen=True)
class ClearFlags:
    """Fields the user explicitly wants emptied, independent of supplied values."""

    fields: frozenset[str] = frozenset()

    @classmethod
    def of(cls, *names: str) -> "ClearFlags":
        return cls(frozenset(names))

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __bool__(self) -> bool:
        return bool(self.fields)


@dataclass(frozen=True)
class CandidateMetadata:
    """Metadata for one book as supplied by a provider or a manual edit.

    Collections are tuples; an empty tuple means "no data supplied". The
    ``locks`` mapping carries lock changes: a field absent from it is left as is.
    """

    provider: MetadataProvider | None = None
    title: str | None = None
    subtitle: str | None = None
    publisher: str | None = None
    published_date: date | None = None
    description: str | None = None
    series_name: str | None = None
    series_number: float | None = None
    series_total: int | None = None
    isbn13: str | None = None
    isbn10: str | None = None
    asin: str | None = None
    goodreads_id: str | None = None
    comicvine_id: str | None = None
    hardcover_id: str | None = None
    hardcover_book_id: int | None = None
    google_id: str | None = None
    page_count: int | None = None
    language: str | None = None
    amazon_rating: float | None = None
    amazon_review_count: int | None = None
    goodreads_rating: float | None = None
    goodreads_review_count: int | None = None
    hardcover_rating: float | None = None
    hardcover_review_count: int | None = None
    authors: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    moods: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    reviews: tuple[BookReview, ...] = ()
    thumbnail_url: str | None = None
    locks: dict[str, bool] = field(default_factory=dict)

    @property
    def author(self) -> str:
        """Convenience property: joined author string for display."""
        return ", ".join(self.authors)

    def with_provider(self, provider: MetadataProvider) -> "CandidateMetadata":
        return replace(self, provider=provider)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (used for stored proposals)."""
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "provider":
                value = value.value if value else None
            elif f.name == "published_date":
                value = value.isoformat() if value else None
            elif f.name == "reviews":
                value = [review.to_dict() for review in value]
            elif isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, dict):
                value = dict(value)
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateMetadata":
        """Rebuild a candidate from ``to_dict`` output. Unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {k: v for k, v in data.items() if k in known}
        if kwargs.get("provider"):
            kwargs["provider"] = MetadataProvider.parse(kwargs["provider"])
        if kwargs.get("published_date"):
            kwargs["published_date"] = date.fromisoformat(kwargs["published_date"])
        for name in ("authors", "categories", "moods", "tags"):
            if name in kwargs:
                kwargs[name] = tuple(kwargs[name] or ())
        if "reviews" in kwargs:
            kwargs["reviews"] = tuple(BookReview.from_dict(r) for r in kwargs["reviews"] or ())
        if "locks" in kwargs:
            kwargs["locks"] = dict(kwargs["locks"] or {})
        return cls(**kwargs)
