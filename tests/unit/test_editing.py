# ABOUTME: Unit tests for the direct single-record metadata service.
# ABOUTME: Validates transactional updates, candidate lookup, and catalog rescoring.

from collections.abc import Callable

import pytest

from shelfkeeper.core.editing import MetadataService
from shelfkeeper.core.updater import MetadataUpdater, RecordLockedError
from shelfkeeper.db.catalog import CatalogStore, RecordNotFoundError
from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.metadata.fields import LOCKABLE_FIELDS
from shelfkeeper.metadata.provider import ProviderRegistry
from shelfkeeper.metadata.scoring import MatchWeights
from shelfkeeper.metadata.types import (
    CandidateMetadata,
    ClearFlags,
    MetadataProvider,
    ReplaceMode,
    UnknownProviderError,
)
from shelfkeeper.settings import AppSettings
from tests.fixtures.fakes import FakeProvider, FakeThumbnails

GOOGLE_CANDIDATES = [
    CandidateMetadata(provider=MetadataProvider.GOOGLE, title=f"Dune ({n})") for n in range(4)
]


@pytest.fixture
def google() -> FakeProvider:
    return FakeProvider(MetadataProvider.GOOGLE, candidates=GOOGLE_CANDIDATES)


@pytest.fixture
def service(store: CatalogStore, google: FakeProvider) -> MetadataService:
    updater = MetadataUpdater(store, AppSettings(), covers=FakeThumbnails())
    return MetadataService(store, updater, ProviderRegistry([google]))


class TestUpdate:
    """Tests for MetadataService.update."""

    def test_update_is_persisted(
        self,
        service: MetadataService,
        store: CatalogStore,
        make_record: Callable[..., CatalogRecord],
    ) -> None:
        record = make_record(title="Old")
        updated, changed = service.update(record.id, CandidateMetadata(title="New", authors=("A",)))
        assert changed
        assert updated.title == "New"
        stored = store.get_record(record.id)
        assert stored.title == "New"
        assert stored.authors == ["A"]
        assert stored.match_score is not None

    def test_unchanged_update(
        self, service: MetadataService, make_record: Callable[..., CatalogRecord]
    ) -> None:
        record = make_record(title="Same")
        _, changed = service.update(record.id, CandidateMetadata(title="Same"))
        assert not changed

    def test_clear_and_lock(
        self,
        service: MetadataService,
        store: CatalogStore,
        make_record: Callable[..., CatalogRecord],
    ) -> None:
        record = make_record(title="Dune", publisher="Chilton")
        service.update(
            record.id,
            CandidateMetadata(locks={"title": True}),
            clear=ClearFlags.of("publisher"),
        )
        stored = store.get_record(record.id)
        assert stored.publisher is None
        assert stored.locked == {"title"}

    def test_replace_missing_keeps_existing(
        self,
        service: MetadataService,
        store: CatalogStore,
        make_record: Callable[..., CatalogRecord],
    ) -> None:
        record = make_record(title="Dune")
        service.update(
            record.id,
            CandidateMetadata(title="Other", publisher="Chilton"),
            replace_mode=ReplaceMode.REPLACE_MISSING,
        )
        stored = store.get_record(record.id)
        assert stored.title == "Dune"
        assert stored.publisher == "Chilton"

    def test_fully_locked_record_rejected(
        self,
        service: MetadataService,
        store: CatalogStore,
        make_record: Callable[..., CatalogRecord],
    ) -> None:
        record = make_record(title="Dune", locked=set(LOCKABLE_FIELDS))
        with pytest.raises(RecordLockedError):
            service.update(record.id, CandidateMetadata(title="Other"))
        assert store.get_record(record.id).title == "Dune"

    def test_missing_book(self, service: MetadataService) -> None:
        with pytest.raises(RecordNotFoundError):
            service.update(999, CandidateMetadata(title="x"))


class TestFetchCandidates:
    """Tests for MetadataService.fetch_candidates."""

    def test_returns_limited_candidates(
        self,
        service: MetadataService,
        google: FakeProvider,
        make_record: Callable[..., CatalogRecord],
    ) -> None:
        record = make_record(title="Dune", authors=["Frank Herbert"], isbn13="9780441172719")
        candidates = service.fetch_candidates(record.id, "google", limit=2)
        assert [c.title for c in candidates] == ["Dune (0)", "Dune (1)"]
        hint = google.hints[0]
        assert hint.title == "Dune"
        assert hint.authors == ("Frank Herbert",)
        assert hint.isbn == "9780441172719"

    def test_unregistered_provider(
        self, service: MetadataService, make_record: Callable[..., CatalogRecord]
    ) -> None:
        record = make_record(title="Dune")
        with pytest.raises(UnknownProviderError):
            service.fetch_candidates(record.id, MetadataProvider.AMAZON)

    def test_file_name_used_without_title(
        self,
        service: MetadataService,
        google: FakeProvider,
        make_record: Callable[..., CatalogRecord],
    ) -> None:
        record = make_record(file_name="the_dispossessed.epub")
        service.fetch_candidates(record.id, "Google")
        assert google.hints[0].title == "the_dispossessed"


class TestRecalculateScores:
    """Tests for MetadataService.recalculate_scores."""

    def test_rescores_changed_records_only(
        self,
        service: MetadataService,
        store: CatalogStore,
        make_record: Callable[..., CatalogRecord],
    ) -> None:
        weights = MatchWeights(**{name: 0 for name in MatchWeights().to_dict()} | {"title": 1})
        titled = make_record(title="Dune", match_score=100.0)
        blank = make_record(match_score=50.0)

        assert service.recalculate_scores(weights) == 1
        assert store.get_record(titled.id).match_score == 100.0
        assert store.get_record(blank.id).match_score == 0.0
