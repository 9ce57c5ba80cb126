# ABOUTME: Direct, user-initiated metadata operations on a single catalog record.
# ABOUTME: Applies an update in one transaction, lists provider candidates, and rescores the catalog.

import logging

from shelfkeeper.core.updater import MetadataUpdater
from shelfkeeper.db.catalog import CatalogStore
from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.metadata.provider import BookHint, ProviderRegistry
from shelfkeeper.metadata.scoring import MatchWeights, score_record
from shelfkeeper.metadata.types import (
    CandidateMetadata,
    ClearFlags,
    MetadataProvider,
    ReplaceMode,
)

logger = logging.getLogger(__name__)


class MetadataService:
    """The direct single-record update path and candidate lookup."""

    def __init__(
        self, store: CatalogStore, updater: MetadataUpdater, registry: ProviderRegistry
    ) -> None:
        self._store = store
        self._updater = updater
        self._registry = registry

    def update(
        self,
        book_id: int,
        update: CandidateMetadata,
        *,
        clear: ClearFlags = ClearFlags(),
        replace_mode: ReplaceMode | None = None,
        merge_categories: bool = False,
        merge_moods: bool = False,
        merge_tags: bool = False,
        update_thumbnail: bool = False,
    ) -> tuple[CatalogRecord, bool]:
        """Apply ``update`` to one book and persist it.

        Returns:
            The record after the update and whether anything changed.

        Raises:
            RecordNotFoundError: If the book does not exist.
            RecordLockedError: If every field of the book is locked.
        """
        with self._store.transaction():
            record = self._store.get_record(book_id)
            changed = self._updater.apply(
                record,
                update,
                clear=clear,
                replace_mode=replace_mode,
                merge_categories=merge_categories,
                merge_moods=merge_moods,
                merge_tags=merge_tags,
                update_thumbnail=update_thumbnail,
            )
            if changed:
                self._store.save_record(record)
        logger.info("Book %s %s", book_id, "updated" if changed else "unchanged")
        return record, changed

    def fetch_candidates(
        self, book_id: int, provider: MetadataProvider | str, limit: int = 5
    ) -> list[CandidateMetadata]:
        """Ask one provider for several candidates so a user can choose a match.

        Raises:
            RecordNotFoundError: If the book does not exist.
            UnknownProviderError: If the provider has no registered client.
        """
        record = self._store.get_record(book_id)
        client = self._registry.get(MetadataProvider.parse(provider))
        return client.fetch_candidates(BookHint.from_record(record), limit)

    def recalculate_scores(self, weights: MatchWeights) -> int:
        """Rescore every record; returns how many scores changed."""
        changed = 0
        with self._store.transaction():
            for book_id in self._store.all_ids():
                record = self._store.get_record(book_id)
                score = score_record(record, weights)
                if score == record.match_score:
                    continue
                record.match_score = score
                self._store.save_record(record)
                changed += 1
        logger.info("Recalculated match scores, %d changed", changed)
        return changed
