# ABOUTME: Refresh options: per-field provider authority order and merge switches.
# ABOUTME: Serializable to JSON so options can live in settings or ride on a request.

from dataclasses import dataclass, field
from typing import Any

from shelfkeeper.metadata.fields import COLLECTION_FIELDS, SCALAR_FIELD_NAMES
from shelfkeeper.metadata.types import MetadataProvider

MAX_AUTHORITY_DEPTH = 4

# Fields resolved by authority order. Provider-native ids, ratings, moods, and
# tags are taken straight from their owning provider instead.
AUTHORITY_FIELDS: tuple[str, ...] = (
    "title",
    "subtitle",
    "description",
    "authors",
    "publisher",
    "published_date",
    "series_name",
    "series_number",
    "series_total",
    "isbn13",
    "isbn10",
    "language",
    "page_count",
    "categories",
    "cover",
)

ENABLEABLE_FIELDS: frozenset[str] = frozenset(
    (*SCALAR_FIELD_NAMES, *COLLECTION_FIELDS, "cover")
)


@dataclass(frozen=True)
class FieldAuthority:
    """Providers for one field, highest priority first."""

    providers: tuple[MetadataProvider, ...] = ()

    def __post_init__(self) -> None:
        if len(self.providers) > MAX_AUTHORITY_DEPTH:
            msg = (
                f"a field authority holds at most {MAX_AUTHORITY_DEPTH} providers, "
                f"got {len(self.providers)}"
            )
            raise ValueError(msg)

    @classmethod
    def of(cls, *providers: "MetadataProvider | str") -> "FieldAuthority":
        return cls(tuple(MetadataProvider.parse(p) for p in providers))

    def __iter__(self):
        return iter(self.providers)

    def __bool__(self) -> bool:
        return bool(self.providers)


def _default_field_options() -> dict[str, FieldAuthority]:
    primary = FieldAuthority.of(MetadataProvider.OPEN_LIBRARY)
    return {name: primary for name in AUTHORITY_FIELDS}


def _default_enabled_fields() -> frozenset[str]:
    return ENABLEABLE_FIELDS


@dataclass(frozen=True)
class RefreshOptions:
    """How a refresh resolves and applies metadata.

    Attributes:
        library_id: Library these options belong to, or None for the global default.
        refresh_covers: Whether resolved cover URLs replace the current cover.
        merge_categories: Union categories (and authors) instead of replacing them.
        review_before_apply: Stage proposals instead of writing to records.
        field_options: Authority order per field.
        enabled_fields: Fields that are resolved at all.
    """

    library_id: int | None = None
    refresh_covers: bool = False
    merge_categories: bool = False
    review_before_apply: bool = False
    field_options: dict[str, FieldAuthority] = field(default_factory=_default_field_options)
    enabled_fields: frozenset[str] = field(default_factory=_default_enabled_fields)

    def authority(self, name: str) -> FieldAuthority:
        return self.field_options.get(name, FieldAuthority())

    def is_enabled(self, name: str) -> bool:
        return name in self.enabled_fields

    def to_dict(self) -> dict[str, Any]:
        return {
            "library_id": self.library_id,
            "refresh_covers": self.refresh_covers,
            "merge_categories": self.merge_categories,
            "review_before_apply": self.review_before_apply,
            "field_options": {
                name: [p.value for p in authority]
                for name, authority in self.field_options.items()
            },
            "enabled_fields": sorted(self.enabled_fields),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RefreshOptions":
        """Build options from a dict, filling omitted keys with defaults.

        Raises:
            ValueError: On unknown fields or providers.
        """
        kwargs: dict[str, Any] = {}
        for key in ("library_id", "refresh_covers", "merge_categories", "review_before_apply"):
            if key in data:
                kwargs[key] = data[key]
        if "field_options" in data:
            unknown = set(data["field_options"]) - set(AUTHORITY_FIELDS)
            if unknown:
                raise ValueError(f"Unknown authority fields: {', '.join(sorted(unknown))}")
            kwargs["field_options"] = {
                name: FieldAuthority.of(*providers)
                for name, providers in data["field_options"].items()
            }
        if "enabled_fields" in data:
            enabled = frozenset(data["enabled_fields"])
            unknown = enabled - ENABLEABLE_FIELDS
            if unknown:
                raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
            kwargs["enabled_fields"] = enabled
        return cls(**kwargs)
