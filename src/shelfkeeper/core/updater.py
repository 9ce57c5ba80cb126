# ABOUTME: Merge engine applying resolved metadata onto a catalog record.
# ABOUTME: Honors locks, clear flags, and replace modes; handles covers, scoring, file rewrite and move.

import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from shelfkeeper.db.catalog import CatalogStore
from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.files.covers import ThumbnailService, is_local_or_private_url
from shelfkeeper.files.hashing import compute_file_hash
from shelfkeeper.files.mover import FileMover
from shelfkeeper.formats.epub import MetadataFileWriter
from shelfkeeper.metadata.changes import plan_update
from shelfkeeper.metadata.fields import COLLECTION_FIELDS
from shelfkeeper.metadata.policy import is_blank
from shelfkeeper.metadata.scoring import score_record
from shelfkeeper.metadata.types import CandidateMetadata, ClearFlags, ReplaceMode
from shelfkeeper.settings import AppSettings

logger = logging.getLogger(__name__)


class RecordLockedError(Exception):
    """Raised when an update targets a record whose every field is locked."""


class MetadataUpdater:
    """Applies CandidateMetadata to CatalogRecords.

    The updater mutates the record in memory and performs file side effects;
    the caller persists the record inside its own transaction.
    """

    def __init__(
        self,
        store: CatalogStore,
        settings: AppSettings,
        *,
        file_writers: Sequence[MetadataFileWriter] = (),
        file_mover: FileMover | None = None,
        covers: ThumbnailService | None = None,
        url_guard: Callable[[str], bool] = is_local_or_private_url,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._settings = settings
        self._writers = list(file_writers)
        self._mover = file_mover
        self._covers = covers
        self._url_guard = url_guard
        self._clock = clock

    def apply(
        self,
        record: CatalogRecord,
        update: CandidateMetadata,
        *,
        clear: ClearFlags = ClearFlags(),
        replace_mode: ReplaceMode | None = None,
        merge_categories: bool = False,
        merge_moods: bool = False,
        merge_tags: bool = False,
        update_thumbnail: bool = False,
    ) -> bool:
        """Merge ``update`` into ``record``.

        Returns:
            True if any value, lock, or the cover changed.

        Raises:
            RecordLockedError: If every field is locked and the update does not
                change any lock.
        """
        plan = plan_update(
            record,
            update,
            clear=clear,
            replace_mode=replace_mode,
            merge_categories=merge_categories,
            merge_moods=merge_moods,
            merge_tags=merge_tags,
        )

        if record.all_locked and not plan.locks:
            raise RecordLockedError(f"All fields of book {record.id} are locked")

        thumbnail_url = None
        if update_thumbnail and not record.is_locked("cover") and not is_blank(update.thumbnail_url):
            thumbnail_url = update.thumbnail_url

        if not plan and thumbnail_url is None:
            logger.debug("No changes for book %s, skipping", record.id)
            return False

        for name, value in plan.values.items():
            if name in COLLECTION_FIELDS:
                value = [self._store.resolve_or_create(name, entry) for entry in value]
            setattr(record, name, value)

        cover_updated = False
        if thumbnail_url is not None:
            cover_updated = self._update_thumbnail(record, thumbnail_url)

        for name, locked in plan.locks.items():
            record.set_lock(name, locked)

        if plan:
            record.match_score = score_record(record, self._settings.match_weights)

        if plan.has_value_changes:
            if self._settings.save_to_original_file and plan.has_file_changes:
                self._write_file(record, thumbnail_url if cover_updated else None, clear)
            if self._settings.move_files_to_library_pattern:
                self._move_file(record)

        return bool(plan) or cover_updated

    def write_file(self, record: CatalogRecord, clear: ClearFlags = ClearFlags()) -> None:
        """Rewrite a record's book file and refresh its hash, ignoring locks.

        Used by consolidation. Failures are logged.
        """
        self._write_file(record, None, clear)

    def move_file(self, record: CatalogRecord) -> None:
        """Relocate a record's file to the library pattern. Failures are logged."""
        self._move_file(record)

    def _update_thumbnail(self, record: CatalogRecord, url: str) -> bool:
        if self._url_guard(url):
            logger.warning("Rejected cover URL for book %s: %s is local or private", record.id, url)
            return False
        if self._covers is None or record.id is None:
            return False
        try:
            path = self._covers.create_from_url(record.id, url)
        except Exception as exc:
            logger.warning("Failed to update cover for book %s from %s: %s", record.id, url, exc)
            return False
        record.cover_path = str(path)
        record.cover_updated_on = self._clock()
        return True

    def _write_file(
        self, record: CatalogRecord, thumbnail_url: str | None, clear: ClearFlags
    ) -> None:
        writer = next((w for w in self._writers if w.supports(record.book_type)), None)
        if writer is None:
            logger.debug("No metadata writer for %s files", record.book_type)
            return
        path = self._store.book_path(record)
        if path is None:
            return
        try:
            writer.write_metadata(path, record, thumbnail_url, clear)
            record.file_hash = compute_file_hash(path)
        except Exception as exc:
            logger.warning("Failed to write metadata to %s: %s", path, exc)

    def _move_file(self, record: CatalogRecord) -> None:
        if self._mover is None:
            return
        try:
            result = self._mover.move_if_needed(record)
        except Exception as exc:
            logger.warning("Failed to move file for book %s: %s", record.id, exc)
            return
        if result.moved:
            record.file_name = result.new_name
            record.file_sub_path = result.new_sub_path or ""
