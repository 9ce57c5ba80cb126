# ABOUTME: Job service: starts refresh jobs in the background and manages their proposals.
# ABOUTME: Status, listing, cancellation, deletion, and proposal accept/reject by reviewers.

import logging
import sqlite3
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime

from shelfkeeper.core.cancellation import CombinedCancellation, InMemoryCancellation
from shelfkeeper.core.editing import MetadataService
from shelfkeeper.core.refresh import RefreshRequest
from shelfkeeper.core.services import ServiceFactory
from shelfkeeper.db.catalog import CatalogStore
from shelfkeeper.db.jobs import (
    JobNotFoundError,
    JobStatus,
    JobStore,
    Proposal,
    ProposalStatus,
    RefreshJob,
)

logger = logging.getLogger(__name__)


@dataclass
class JobSummary:
    """A job with its proposal counts and a one-line status message."""

    job: RefreshJob
    counts: dict[ProposalStatus, int]

    @property
    def message(self) -> str:
        job = self.job
        if job.status is JobStatus.ERROR:
            return (
                f"Metadata fetch failed, processed {job.completed_items} "
                f"of {job.total_items} books."
            )
        if job.status is JobStatus.CANCELLED:
            return f"Cancelled after {job.completed_items} of {job.total_items} books."
        if job.status is JobStatus.IN_PROGRESS:
            return f"Processing {job.completed_items} of {job.total_items} books."
        if job.review_mode:
            return (
                f"Metadata fetch completed! {self.counts[ProposalStatus.FETCHED]} "
                "books need review."
            )
        return job.message or "Completed."


class JobService:
    """Front door for refresh jobs.

    Background jobs run on their own thread with their own connection; this
    service's connection is used for queries and reviewer actions.
    """

    def __init__(self, conn: sqlite3.Connection, services: ServiceFactory) -> None:
        self._conn = conn
        self._services = services
        self._store = CatalogStore(conn)
        self._jobs = JobStore(conn)
        self._cancellation = services.cancellation_for(conn)
        self._early_cancels = InMemoryCancellation()
        self._threads: dict[str, threading.Thread] = {}
        self._lock = threading.Lock()

    def start(self, request: RefreshRequest) -> str:
        """Start a refresh on a background thread and return its job id at once."""
        job_id = str(uuid.uuid4())
        thread = threading.Thread(
            target=self._run_in_background,
            args=(request, job_id),
            name=f"refresh-{job_id[:8]}",
            daemon=True,
        )
        with self._lock:
            self._threads[job_id] = thread
        thread.start()
        logger.info("Queued refresh job %s", job_id)
        return job_id

    def run(self, request: RefreshRequest) -> RefreshJob:
        """Run a refresh to completion on the calling thread."""
        return self._services.orchestrator(self._conn).run(request, str(uuid.uuid4()))

    def wait(self, job_id: str, timeout: float | None = None) -> bool:
        """Block until a background job started here finishes.

        Returns:
            True if the job is no longer running.
        """
        with self._lock:
            thread = self._threads.get(job_id)
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _run_in_background(self, request: RefreshRequest, job_id: str) -> None:
        try:
            conn = self._services.connect()
            try:
                cancellation = CombinedCancellation(
                    self._services.cancellation_for(conn), self._early_cancels
                )
                self._services.orchestrator(conn, cancellation).run(request, job_id)
            except Exception:
                # Already reported by the orchestrator as a fatal job error.
                logger.debug("Background refresh %s stopped", job_id)
            finally:
                conn.close()
        finally:
            self._early_cancels.clear(job_id)
            with self._lock:
                self._threads.pop(job_id, None)

    def status(self, job_id: str) -> RefreshJob:
        """Current state of a job.

        A job started here whose worker has not yet recorded it is reported
        as in progress with no items.

        Raises:
            JobNotFoundError: If the job is unknown.
        """
        job = self._jobs.find_job(job_id)
        if job is not None:
            return job
        with self._lock:
            pending = job_id in self._threads
        if pending:
            return RefreshJob(id=job_id, status=JobStatus.IN_PROGRESS)
        raise JobNotFoundError(f"Job {job_id} not found")

    def list_jobs(self, active_only: bool = False) -> list[JobSummary]:
        """Jobs newest first; ``active_only`` keeps in-progress jobs and
        finished review jobs that still have proposals to review."""
        summaries = []
        for job in self._jobs.list_jobs():
            counts = self._jobs.proposal_counts(job.id)
            if active_only and job.status.is_terminal and not counts[ProposalStatus.FETCHED]:
                continue
            summaries.append(JobSummary(job=job, counts=counts))
        return summaries

    def cancel(self, job_id: str) -> bool:
        """Request cancellation; the job stops before its next book.

        A job started here whose worker has not yet recorded it is flagged in
        memory and stops before its first book.

        Returns:
            False if the job had already finished or the flag was not recorded.

        Raises:
            JobNotFoundError: If the job is unknown.
        """
        job = self._jobs.find_job(job_id)
        if job is None:
            with self._lock:
                if job_id not in self._threads:
                    raise JobNotFoundError(f"Job {job_id} not found")
                self._early_cancels.request(job_id)
            logger.info("Cancellation requested for queued job %s", job_id)
            return True
        if job.status.is_terminal:
            return False
        recorded = self._cancellation.request(job_id)
        if recorded:
            logger.info("Cancellation requested for job %s", job_id)
        else:
            logger.warning("Cancellation of job %s was not recorded", job_id)
        return recorded

    def delete(self, job_id: str) -> None:
        """Delete a finished job and its proposals.

        Raises:
            JobNotFoundError: If the job is unknown.
            ValueError: If the job is still running.
        """
        job = self._jobs.get_job(job_id)
        if not job.status.is_terminal:
            raise ValueError(f"Job {job_id} is still running; cancel it first")
        with self._store.transaction():
            self._jobs.delete_job(job_id)

    def list_proposals(
        self, job_id: str, status: ProposalStatus | None = None
    ) -> list[Proposal]:
        """Raises JobNotFoundError if the job is unknown."""
        self._jobs.get_job(job_id)
        return self._jobs.list_proposals(job_id, status)

    def accept_proposal(
        self, job_id: str, proposal_id: int, reviewer: str | None = None
    ) -> Proposal:
        """Apply a proposal's metadata to its book and mark it accepted.

        The book's library refresh options decide category merging and
        whether the proposed cover is downloaded.

        Raises:
            ProposalNotFoundError: If the proposal is not part of the job.
            ValueError: If the proposal was already reviewed.
            RecordNotFoundError: If the book has since been deleted.
            RecordLockedError: If every field of the book is locked.
        """
        with self._store.transaction():
            proposal = self._unreviewed_proposal(job_id, proposal_id)
            settings = self._services.settings(self._conn)
            options = settings.options_for_library(
                self._store.get_record(proposal.book_id).library_id
            )
            editor = MetadataService(
                self._store, self._services.updater(self._store, settings), self._services.registry
            )
            editor.update(
                proposal.book_id,
                proposal.metadata,
                merge_categories=options.merge_categories,
                merge_moods=True,
                merge_tags=True,
                update_thumbnail=options.refresh_covers,
            )
            return self._review(proposal, ProposalStatus.ACCEPTED, reviewer)

    def reject_proposal(
        self, job_id: str, proposal_id: int, reviewer: str | None = None
    ) -> Proposal:
        """Mark a proposal rejected without touching its book.

        Raises:
            ProposalNotFoundError: If the proposal is not part of the job.
            ValueError: If the proposal was already reviewed.
        """
        with self._store.transaction():
            proposal = self._unreviewed_proposal(job_id, proposal_id)
            return self._review(proposal, ProposalStatus.REJECTED, reviewer)

    def _unreviewed_proposal(self, job_id: str, proposal_id: int) -> Proposal:
        proposal = self._jobs.get_proposal(job_id, proposal_id)
        if proposal.status is not ProposalStatus.FETCHED:
            raise ValueError(
                f"Proposal {proposal_id} was already {proposal.status.value.lower()}"
            )
        return proposal

    def _review(
        self, proposal: Proposal, status: ProposalStatus, reviewer: str | None
    ) -> Proposal:
        proposal.status = status
        proposal.reviewed_at = datetime.now()
        proposal.reviewer = reviewer
        self._jobs.save_proposal_review(proposal)
        logger.info("Proposal %s of job %s %s", proposal.id, proposal.job_id, status.value.lower())
        return proposal
