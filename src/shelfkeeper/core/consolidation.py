# ABOUTME: Catalog-wide merging and deletion of taxonomy values (authors, series, tags, ...).
# ABOUTME: Administrative bulk operations that bypass field locks and optionally rewrite files.

import logging
from dataclasses import dataclass, field
from enum import Enum

from shelfkeeper.core.updater import MetadataUpdater
from shelfkeeper.db.catalog import CatalogStore
from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.metadata.types import ClearFlags
from shelfkeeper.settings import AppSettings

logger = logging.getLogger(__name__)


class ConsolidationError(ValueError):
    """Raised when a consolidation request is invalid. Nothing has been changed."""


class TaxonomyKind(str, Enum):
    AUTHORS = "authors"
    CATEGORIES = "categories"
    MOODS = "moods"
    TAGS = "tags"
    SERIES = "series"
    PUBLISHERS = "publishers"
    LANGUAGES = "languages"

    @property
    def column(self) -> str | None:
        """Books column for single-valued kinds, None for entity-backed kinds."""
        return _SINGLE_VALUE_COLUMNS.get(self)

    @property
    def label(self) -> str:
        return _LABELS.get(self, self.value.capitalize())


_SINGLE_VALUE_COLUMNS: dict[TaxonomyKind, str] = {
    TaxonomyKind.SERIES: "series_name",
    TaxonomyKind.PUBLISHERS: "publisher",
    TaxonomyKind.LANGUAGES: "language",
}

_LABELS: dict[TaxonomyKind, str] = {
    TaxonomyKind.SERIES: "Series",
    TaxonomyKind.PUBLISHERS: "Publisher",
    TaxonomyKind.LANGUAGES: "Language",
}


@dataclass
class ConsolidationResult:
    """Books touched and values removed by one consolidation or deletion."""

    updated_books: list[int] = field(default_factory=list)
    removed_values: list[str] = field(default_factory=list)


def _clean(values: list[str]) -> list[str]:
    cleaned: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


class ConsolidationService:
    """Merges duplicate taxonomy values into targets or deletes them outright."""

    def __init__(
        self, store: CatalogStore, updater: MetadataUpdater, settings: AppSettings
    ) -> None:
        self._store = store
        self._updater = updater
        self._settings = settings

    def consolidate(
        self, kind: TaxonomyKind, targets: list[str], values_to_merge: list[str]
    ) -> ConsolidationResult:
        """Replace every occurrence of ``values_to_merge`` with ``targets``.

        Series, publishers, and languages take exactly one target.

        Raises:
            ConsolidationError: On an empty or wrong-sized target list.
        """
        targets = _clean(targets)
        values = _clean(values_to_merge)
        if not targets:
            raise ConsolidationError("At least one target value is required")
        if kind.column is not None and len(targets) != 1:
            raise ConsolidationError(f"{kind.label} merge requires exactly one target value")

        with self._store.transaction():
            if kind.column is not None:
                return self._merge_field(kind.column, targets[0], values)
            return self._merge_entities(kind.value, targets, values)

    def delete(self, kind: TaxonomyKind, values: list[str]) -> ConsolidationResult:
        """Remove ``values`` from every record; entity-backed values are deleted too."""
        values = _clean(values)
        with self._store.transaction():
            if kind is TaxonomyKind.SERIES:
                return self._clear_field("series_name", values, series=True)
            if kind.column is not None:
                return self._clear_field(kind.column, values)
            return self._delete_entities(kind.value, values, exact=kind is TaxonomyKind.AUTHORS)

    def _merge_entities(
        self, kind: str, targets: list[str], values: list[str]
    ) -> ConsolidationResult:
        result = ConsolidationResult()
        target_ids: set[int] = set()
        for target in targets:
            found = self._store.find_entity_ci(kind, target)
            if found is None:
                self._store.resolve_or_create(kind, target)
                found = self._store.find_entity(kind, target)
            elif found[1] != target:
                logger.info("Renaming %s '%s' to '%s'", kind, found[1], target)
                self._store.rename_entity(kind, found[0], target)
            target_ids.add(found[0])  # type: ignore[index]

        for value in values:
            found = self._store.find_entity_ci(kind, value)
            if found is None:
                logger.debug("No %s named '%s' to merge", kind, value)
                continue
            entity_id, stored = found
            if entity_id in target_ids:
                continue
            for book_id in self._store.ids_with_entity(kind, entity_id):
                record = self._store.get_record(book_id)
                names = [name for name in getattr(record, kind) if name != stored]
                names.extend(t for t in targets if t not in names)
                setattr(record, kind, names)
                self._persist(record, result)
            self._store.delete_entity(kind, entity_id)
            result.removed_values.append(stored)
        return result

    def _merge_field(self, column: str, target: str, values: list[str]) -> ConsolidationResult:
        result = ConsolidationResult()
        for value in values:
            for book_id in self._store.ids_with_field(column, value):
                record = self._store.get_record(book_id)
                if getattr(record, column) == target:
                    continue
                setattr(record, column, target)
                self._persist(record, result)
            result.removed_values.append(value)
        return result

    def _delete_entities(self, kind: str, values: list[str], *, exact: bool) -> ConsolidationResult:
        result = ConsolidationResult()
        for value in values:
            if exact:
                found = self._store.find_entity(kind, value)
            else:
                found = self._store.find_entity_ci(kind, value)
            if found is None:
                logger.debug("No %s named '%s' to delete", kind, value)
                continue
            entity_id, stored = found
            for book_id in self._store.ids_with_entity(kind, entity_id):
                record = self._store.get_record(book_id)
                setattr(record, kind, [name for name in getattr(record, kind) if name != stored])
                self._persist(record, result, ClearFlags.of(kind))
            self._store.delete_entity(kind, entity_id)
            result.removed_values.append(stored)
        return result

    def _clear_field(
        self, column: str, values: list[str], *, series: bool = False
    ) -> ConsolidationResult:
        result = ConsolidationResult()
        for value in values:
            for book_id in self._store.ids_with_field(column, value):
                record = self._store.get_record(book_id)
                setattr(record, column, None)
                if series:
                    record.series_number = None
                    record.series_total = None
                self._persist(record, result, ClearFlags.of(column))
            result.removed_values.append(value)
        return result

    def _persist(
        self, record: CatalogRecord, result: ConsolidationResult, cleared: ClearFlags = ClearFlags()
    ) -> None:
        if self._settings.save_to_original_file:
            self._updater.write_file(record, cleared)
        if self._settings.move_files_to_library_pattern:
            self._updater.move_file(record)
        self._store.save_record(record)
        if record.id not in result.updated_books:
            result.updated_books.append(record.id)  # type: ignore[arg-type]
