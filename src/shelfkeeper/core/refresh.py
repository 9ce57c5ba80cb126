# ABOUTME: Batch metadata refresh: resolves targets, fetches per book, merges or stages proposals.
# ABOUTME: One transaction per book, cooperative cancellation, per-item isolation, progress events.

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from shelfkeeper.core.cancellation import CancellationRegistry
from shelfkeeper.core.fetch import fetch_top_candidates
from shelfkeeper.core.updater import MetadataUpdater
from shelfkeeper.db.catalog import CatalogStore
from shelfkeeper.db.jobs import JobStatus, JobStore, RefreshJob
from shelfkeeper.metadata.options import RefreshOptions
from shelfkeeper.metadata.provider import BookHint, ProviderRegistry
from shelfkeeper.metadata.resolver import build_resolved_metadata, prepare_providers
from shelfkeeper.metadata.types import RATE_LIMITED_PROVIDERS, MetadataProvider, ReplaceMode
from shelfkeeper.notifications import BATCH_PROGRESS_TOPIC, BatchProgress, Notifier
from shelfkeeper.settings import AppSettings

logger = logging.getLogger(__name__)

# Pause range, in seconds, after each book fetched from a rate-limited provider.
RATE_LIMIT_DELAY = (0.5, 1.5)


class RefreshError(Exception):
    """Raised when a refresh request cannot be started at all."""


class RefreshType(str, Enum):
    LIBRARY = "LIBRARY"
    BOOKS = "BOOKS"


@dataclass(frozen=True)
class RefreshRequest:
    """What to refresh: a whole library or explicit books, with optional inline options."""

    refresh_type: RefreshType
    library_id: int | None = None
    book_ids: tuple[int, ...] = ()
    options: RefreshOptions | None = None
    user_name: str | None = None


class RefreshOrchestrator:
    """Runs one refresh job to completion on the calling thread."""

    def __init__(
        self,
        store: CatalogStore,
        jobs: JobStore,
        settings: AppSettings,
        registry: ProviderRegistry,
        updater: MetadataUpdater,
        notifier: Notifier,
        cancellation: CancellationRegistry,
        *,
        delay: Callable[[float], None] = time.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._jobs = jobs
        self._settings = settings
        self._registry = registry
        self._updater = updater
        self._notifier = notifier
        self._cancellation = cancellation
        self._delay = delay
        self._jitter = jitter
        self._clock = clock

    def run(self, request: RefreshRequest, job_id: str) -> RefreshJob:
        """Execute the refresh and return the finalized job.

        Per-book failures are reported and skipped. Errors before the book
        loop abort the job with a zero-progress ERROR notification and are
        re-raised.
        """
        job: RefreshJob | None = None
        try:
            fixed_options = self._fixed_options(request)
            book_ids = self._target_ids(request)
            review_mode = fixed_options.review_before_apply if fixed_options else False

            job = RefreshJob(
                id=job_id,
                status=JobStatus.IN_PROGRESS,
                started_at=self._clock(),
                total_items=len(book_ids),
                user_name=request.user_name,
                review_mode=review_mode,
            )
            with self._store.transaction():
                self._jobs.create_job(job)
            logger.info("Refresh job %s started for %d book(s)", job_id, len(book_ids))

            fixed_providers = None
            if fixed_options is not None:
                fixed_providers = prepare_providers(fixed_options, self._settings.enabled_providers)

            for position, book_id in enumerate(book_ids):
                if self._cancellation.is_cancelled(job_id):
                    self._finish(job, JobStatus.CANCELLED, "Task cancelled by user")
                    return job
                self._process_book(job, book_id, position, fixed_options, fixed_providers)
                job.completed_items = position + 1
                with self._store.transaction():
                    self._jobs.save_job(job)

            self._finish(job, JobStatus.COMPLETED, "Batch metadata fetch successfully completed!")
            return job
        except Exception as exc:
            logger.exception("Fatal error during metadata refresh %s", job_id)
            if job is not None:
                self._mark_failed(job, exc)
            self._publish(
                BatchProgress(
                    job_id=job_id,
                    current=0,
                    total=0,
                    message=f"Fatal error during metadata refresh: {exc}",
                    status=JobStatus.ERROR.value,
                    review_mode=job.review_mode if job else False,
                )
            )
            raise
        finally:
            self._cancellation.clear(job_id)

    def _fixed_options(self, request: RefreshRequest) -> RefreshOptions | None:
        """Options shared by every book, or None to resolve them per book."""
        if request.options is not None:
            return request.options
        if request.refresh_type is RefreshType.LIBRARY:
            return self._settings.options_for_library(request.library_id)
        return None

    def _target_ids(self, request: RefreshRequest) -> list[int]:
        if request.refresh_type is RefreshType.LIBRARY:
            if request.library_id is None:
                raise RefreshError("A library refresh needs a library id")
            library = self._store.get_library(request.library_id)
            return self._store.ids_by_library(library.id)
        if request.refresh_type is RefreshType.BOOKS:
            return list(dict.fromkeys(request.book_ids))
        raise RefreshError(f"Invalid refresh type: {request.refresh_type}")

    def _process_book(
        self,
        job: RefreshJob,
        book_id: int,
        position: int,
        fixed_options: RefreshOptions | None,
        fixed_providers: list[MetadataProvider] | None,
    ) -> None:
        label = f"book {book_id}"
        try:
            with self._store.transaction():
                record = self._store.get_record(book_id)
                label = record.title or record.file_name or label
                if record.all_locked:
                    self._progress(job, position + 1, f"Skipped locked book: {label}")
                    return

                options = fixed_options or self._settings.options_for_library(record.library_id)
                review = options.review_before_apply
                providers = fixed_providers
                if providers is None:
                    providers = prepare_providers(options, self._settings.enabled_providers)

                self._progress(job, position, f"Processing '{label}'", review_mode=review)
                candidates = fetch_top_candidates(
                    self._registry,
                    providers,
                    BookHint.from_record(record),
                    timeout=self._settings.provider_timeout,
                )
                if RATE_LIMITED_PROVIDERS.intersection(providers):
                    self._delay(self._jitter(*RATE_LIMIT_DELAY))

                resolved = build_resolved_metadata(book_id, options, candidates)
                if review:
                    self._jobs.add_proposal(job.id, book_id, resolved)
                    # A job holding proposals is reviewable.
                    job.review_mode = True
                else:
                    changed = self._updater.apply(
                        record,
                        resolved,
                        replace_mode=ReplaceMode.REPLACE_MISSING,
                        merge_categories=options.merge_categories,
                        merge_moods=True,
                        merge_tags=True,
                        update_thumbnail=options.refresh_covers,
                    )
                    if changed:
                        self._store.save_record(record)
            self._progress(job, position + 1, f"Processed: {label}", review_mode=review)
        except Exception as exc:
            logger.exception("Failed to refresh metadata for book %s", book_id)
            self._progress(
                job, position + 1, f"Failed to process: {label} - {exc}", JobStatus.ERROR
            )

    def _finish(self, job: RefreshJob, status: JobStatus, message: str) -> None:
        job.status = status
        job.completed_at = self._clock()
        job.message = message
        with self._store.transaction():
            self._jobs.save_job(job)
        logger.info("Refresh job %s %s (%d/%d)", job.id, status.value, job.completed_items, job.total_items)
        self._progress(job, job.completed_items, message, status)

    def _mark_failed(self, job: RefreshJob, exc: Exception) -> None:
        job.status = JobStatus.ERROR
        job.completed_at = self._clock()
        job.message = str(exc)
        try:
            with self._store.transaction():
                self._jobs.save_job(job)
        except Exception:
            logger.exception("Could not record failure of job %s", job.id)

    def _progress(
        self,
        job: RefreshJob,
        current: int,
        message: str,
        status: JobStatus = JobStatus.IN_PROGRESS,
        *,
        review_mode: bool | None = None,
    ) -> None:
        """Publish progress, flagged with the book's own review mode when given."""
        self._publish(
            BatchProgress(
                job_id=job.id,
                current=current,
                total=job.total_items,
                message=message,
                status=status.value,
                review_mode=job.review_mode if review_mode is None else review_mode,
            )
        )

    def _publish(self, progress: BatchProgress) -> None:
        try:
            self._notifier.publish(BATCH_PROGRESS_TOPIC, progress)
        except Exception:
            logger.exception("Progress notification failed for job %s", progress.job_id)
