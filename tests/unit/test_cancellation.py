# ABOUTME: Unit tests for the in-memory and database-backed cancellation registries.
# ABOUTME: The stored registry must be visible across separate connections; combined ones OR their flags.

from datetime import datetime

from shelfkeeper.core.cancellation import (
    CancellationRegistry,
    CombinedCancellation,
    InMemoryCancellation,
    StoredCancellation,
)
from shelfkeeper.db.connection import open_catalog
from shelfkeeper.db.jobs import JobStatus, JobStore, RefreshJob


class TestInMemoryCancellation:
    """Tests for InMemoryCancellation."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryCancellation(), CancellationRegistry)

    def test_request_and_clear(self) -> None:
        registry = InMemoryCancellation()
        assert not registry.is_cancelled("a")
        registry.request("a")
        assert registry.is_cancelled("a")
        assert not registry.is_cancelled("b")
        registry.clear("a")
        assert not registry.is_cancelled("a")

    def test_clear_unknown_job(self) -> None:
        InMemoryCancellation().clear("missing")


class TestStoredCancellation:
    """Tests for StoredCancellation."""

    def _create_job(self, conn, job_id: str) -> None:
        with conn:
            JobStore(conn).create_job(
                RefreshJob(id=job_id, status=JobStatus.IN_PROGRESS, started_at=datetime.now())
            )

    def test_request_seen_by_another_connection(self, conn, db_path) -> None:
        self._create_job(conn, "job-1")
        other = open_catalog(db_path)
        try:
            StoredCancellation(other).request("job-1")
            assert StoredCancellation(conn).is_cancelled("job-1")
        finally:
            other.close()

    def test_clear(self, conn) -> None:
        self._create_job(conn, "job-1")
        registry = StoredCancellation(conn)
        registry.request("job-1")
        registry.clear("job-1")
        assert not registry.is_cancelled("job-1")

    def test_unknown_job_is_not_cancelled(self, conn) -> None:
        registry = StoredCancellation(conn)
        assert registry.request("missing") is False
        assert not registry.is_cancelled("missing")

    def test_request_reports_recorded_flag(self, conn) -> None:
        self._create_job(conn, "job-1")
        assert StoredCancellation(conn).request("job-1") is True


class TestCombinedCancellation:
    """Tests for CombinedCancellation."""

    def test_any_registry_cancels(self, conn) -> None:
        early = InMemoryCancellation()
        registry = CombinedCancellation(StoredCancellation(conn), early)
        assert not registry.is_cancelled("job-1")
        early.request("job-1")
        assert registry.is_cancelled("job-1")

    def test_clear_clears_every_registry(self) -> None:
        first, second = InMemoryCancellation(), InMemoryCancellation()
        registry = CombinedCancellation(first, second)
        first.request("a")
        second.request("a")
        registry.clear("a")
        assert not first.is_cancelled("a")
        assert not second.is_cancelled("a")

    def test_request_goes_to_first_registry(self) -> None:
        first, second = InMemoryCancellation(), InMemoryCancellation()
        assert CombinedCancellation(first, second).request("a") is True
        assert first.is_cancelled("a")
        assert not second.is_cancelled("a")
