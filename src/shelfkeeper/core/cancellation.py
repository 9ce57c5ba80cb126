# ABOUTME: Cooperative cancellation flags for refresh jobs, keyed by job id.
# ABOUTME: In-memory for a single process; database-backed so another process can cancel.

import sqlite3
import threading
from typing import Protocol, runtime_checkable

from shelfkeeper.db.jobs import JobStore


@runtime_checkable
class CancellationRegistry(Protocol):
    """Flags checked by a running job once per item."""

    def request(self, job_id: str) -> bool: ...

    def is_cancelled(self, job_id: str) -> bool: ...

    def clear(self, job_id: str) -> None: ...


class InMemoryCancellation:
    """Thread-safe set of cancelled job ids."""

    def __init__(self) -> None:
        self._cancelled: set[str] = set()
        self._lock = threading.Lock()

    def request(self, job_id: str) -> bool:
        with self._lock:
            self._cancelled.add(job_id)
        return True

    def is_cancelled(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._cancelled

    def clear(self, job_id: str) -> None:
        with self._lock:
            self._cancelled.discard(job_id)


class StoredCancellation:
    """Cancellation flag kept in the refresh_jobs table.

    Each thread or process uses its own connection; flag writes commit
    immediately so other connections see them.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._jobs = JobStore(conn)

    def request(self, job_id: str) -> bool:
        """Flag a recorded job; False when no job row exists yet."""
        with self._conn:
            return self._jobs.set_cancel_requested(job_id, True)

    def is_cancelled(self, job_id: str) -> bool:
        return self._jobs.is_cancel_requested(job_id)

    def clear(self, job_id: str) -> None:
        with self._conn:
            self._jobs.set_cancel_requested(job_id, False)


class CombinedCancellation:
    """A job is cancelled if any of several registries says so.

    Requests go to the first registry; clearing clears them all.
    """

    def __init__(self, *registries: CancellationRegistry) -> None:
        self._registries = registries

    def request(self, job_id: str) -> bool:
        return self._registries[0].request(job_id)

    def is_cancelled(self, job_id: str) -> bool:
        return any(registry.is_cancelled(job_id) for registry in self._registries)

    def clear(self, job_id: str) -> None:
        for registry in self._registries:
            registry.clear(job_id)
