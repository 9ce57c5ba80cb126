# ABOUTME: Persistence for refresh jobs and their review proposals.
# ABOUTME: Shares the catalog connection; callers commit through CatalogStore.transaction().

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from shelfkeeper.metadata.types import CandidateMetadata


class JobNotFoundError(ValueError):
    """Raised when a job id does not exist."""


class ProposalNotFoundError(ValueError):
    """Raised when a proposal id does not exist or belongs to another job."""


class JobStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.IN_PROGRESS


class ProposalStatus(str, Enum):
    FETCHED = "FETCHED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"

    @classmethod
    def parse(cls, value: str) -> "ProposalStatus":
        """Parse a status name case-insensitively.

        Raises:
            ValueError: If the name is not a proposal status.
        """
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(f"Invalid proposal status: {value}") from None


@dataclass
class RefreshJob:
    """A batch refresh run and its progress counters."""

    id: str
    status: JobStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    total_items: int = 0
    completed_items: int = 0
    user_name: str | None = None
    review_mode: bool = False
    message: str | None = None


@dataclass
class Proposal:
    """Fetched metadata staged for a reviewer instead of being written."""

    id: int
    job_id: str
    book_id: int
    metadata: CandidateMetadata
    status: ProposalStatus = ProposalStatus.FETCHED
    fetched_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewer: str | None = None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_job(row: Any) -> RefreshJob:
    return RefreshJob(
        id=row["id"],
        status=JobStatus(row["status"]),
        started_at=_parse_dt(row["started_at"]),
        completed_at=_parse_dt(row["completed_at"]),
        total_items=row["total_items"],
        completed_items=row["completed_items"],
        user_name=row["user_name"],
        review_mode=bool(row["review_mode"]),
        message=row["message"],
    )


def _row_to_proposal(row: Any) -> Proposal:
    return Proposal(
        id=row["id"],
        job_id=row["job_id"],
        book_id=row["book_id"],
        metadata=CandidateMetadata.from_dict(json.loads(row["metadata_json"])),
        status=ProposalStatus(row["status"]),
        fetched_at=_parse_dt(row["fetched_at"]),
        reviewed_at=_parse_dt(row["reviewed_at"]),
        reviewer=row["reviewer"],
    )


class JobStore:
    """Typed CRUD for the refresh_jobs and proposals tables."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_job(self, job: RefreshJob) -> None:
        self._conn.execute(
            "INSERT INTO refresh_jobs (id, status, started_at, completed_at, total_items, "
            "completed_items, user_name, review_mode, message) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                job.id,
                job.status.value,
                _iso(job.started_at),
                _iso(job.completed_at),
                job.total_items,
                job.completed_items,
                job.user_name,
                int(job.review_mode),
                job.message,
            ),
        )

    def save_job(self, job: RefreshJob) -> None:
        """Persist status, timestamps, counters, review flag, and message of an existing job.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        cursor = self._conn.execute(
            "UPDATE refresh_jobs SET status = ?, started_at = ?, completed_at = ?, "
            "total_items = ?, completed_items = ?, review_mode = ?, message = ? WHERE id = ?",
            (
                job.status.value,
                _iso(job.started_at),
                _iso(job.completed_at),
                job.total_items,
                job.completed_items,
                int(job.review_mode),
                job.message,
                job.id,
            ),
        )
        if cursor.rowcount == 0:
            raise JobNotFoundError(f"Job {job.id} not found")

    def find_job(self, job_id: str) -> RefreshJob | None:
        row = self._conn.execute("SELECT * FROM refresh_jobs WHERE id = ?", (job_id,)).fetchone()
        return _row_to_job(row) if row else None

    def get_job(self, job_id: str) -> RefreshJob:
        """Retrieve a job by id.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        job = self.find_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found")
        return job

    def list_jobs(self, statuses: set[JobStatus] | None = None) -> list[RefreshJob]:
        """List jobs newest first, optionally filtered by status."""
        cursor = self._conn.execute("SELECT * FROM refresh_jobs ORDER BY started_at DESC, id")
        jobs = [_row_to_job(row) for row in cursor.fetchall()]
        if statuses is not None:
            jobs = [job for job in jobs if job.status in statuses]
        return jobs

    def delete_job(self, job_id: str) -> None:
        """Delete a job and, by cascade, its proposals.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        cursor = self._conn.execute("DELETE FROM refresh_jobs WHERE id = ?", (job_id,))
        if cursor.rowcount == 0:
            raise JobNotFoundError(f"Job {job_id} not found")

    # --- Cross-process cancellation flag ---

    def set_cancel_requested(self, job_id: str, requested: bool) -> bool:
        """Set or clear the cancel flag. Returns False if the job does not exist."""
        cursor = self._conn.execute(
            "UPDATE refresh_jobs SET cancel_requested = ? WHERE id = ?",
            (int(requested), job_id),
        )
        return cursor.rowcount > 0

    def is_cancel_requested(self, job_id: str) -> bool:
        row = self._conn.execute(
            "SELECT cancel_requested FROM refresh_jobs WHERE id = ?", (job_id,)
        ).fetchone()
        return bool(row and row[0])

    # --- Proposals ---

    def add_proposal(self, job_id: str, book_id: int, metadata: CandidateMetadata) -> Proposal:
        fetched_at = datetime.now()
        cursor = self._conn.execute(
            "INSERT INTO proposals (job_id, book_id, metadata_json, status, fetched_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                job_id,
                book_id,
                json.dumps(metadata.to_dict()),
                ProposalStatus.FETCHED.value,
                fetched_at.isoformat(),
            ),
        )
        return Proposal(
            id=cursor.lastrowid,  # type: ignore[arg-type]
            job_id=job_id,
            book_id=book_id,
            metadata=metadata,
            fetched_at=fetched_at,
        )

    def get_proposal(self, job_id: str, proposal_id: int) -> Proposal:
        """Retrieve a proposal, checking it belongs to the given job.

        Raises:
            ProposalNotFoundError: If missing or owned by a different job.
        """
        row = self._conn.execute(
            "SELECT * FROM proposals WHERE id = ?", (proposal_id,)
        ).fetchone()
        if row is None or row["job_id"] != job_id:
            raise ProposalNotFoundError(f"Proposal {proposal_id} not found for job {job_id}")
        return _row_to_proposal(row)

    def list_proposals(
        self, job_id: str, status: ProposalStatus | None = None
    ) -> list[Proposal]:
        if status is None:
            cursor = self._conn.execute(
                "SELECT * FROM proposals WHERE job_id = ? ORDER BY id", (job_id,)
            )
        else:
            cursor = self._conn.execute(
                "SELECT * FROM proposals WHERE job_id = ? AND status = ? ORDER BY id",
                (job_id, status.value),
            )
        return [_row_to_proposal(row) for row in cursor.fetchall()]

    def save_proposal_review(self, proposal: Proposal) -> None:
        self._conn.execute(
            "UPDATE proposals SET status = ?, reviewed_at = ?, reviewer = ? WHERE id = ?",
            (
                proposal.status.value,
                _iso(proposal.reviewed_at),
                proposal.reviewer,
                proposal.id,
            ),
        )

    def proposal_counts(self, job_id: str) -> dict[ProposalStatus, int]:
        """Number of proposals per status for a job (all statuses present)."""
        counts = {status: 0 for status in ProposalStatus}
        cursor = self._conn.execute(
            "SELECT status, COUNT(*) FROM proposals WHERE job_id = ? GROUP BY status",
            (job_id,),
        )
        for status, count in cursor.fetchall():
            counts[ProposalStatus(status)] = count
        return counts
