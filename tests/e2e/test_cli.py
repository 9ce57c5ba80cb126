# ABOUTME: End-to-end tests for the Shelfkeeper CLI.
# ABOUTME: Drives library, import, refresh, jobs, proposals, edit, and consolidate through CliRunner.

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner, Result

from shelfkeeper.cli import cli
from shelfkeeper.db.catalog import CatalogStore
from shelfkeeper.db.connection import open_catalog
from shelfkeeper.db.jobs import JobStore
from shelfkeeper.metadata.provider import ProviderRegistry
from shelfkeeper.metadata.types import CandidateMetadata, MetadataProvider
from tests.fixtures.fakes import FakeProvider

ANSWER = CandidateMetadata(
    provider=MetadataProvider.OPEN_LIBRARY,
    title="Left Hand",
    series_name="Hainish",
    series_number=4.0,
    page_count=304,
)
CHOICES = [
    CandidateMetadata(provider=MetadataProvider.OPEN_LIBRARY, title="Choice One", publisher="Ace"),
    CandidateMetadata(provider=MetadataProvider.OPEN_LIBRARY, title="Choice Two"),
]


def run(db_path: Path, *args: str, **kwargs) -> Result:
    return CliRunner().invoke(
        cli, [*args, "--db", str(db_path)], env={"COLUMNS": "200"}, **kwargs
    )


def load(db_path: Path, book_id: int = 1):
    conn = open_catalog(db_path)
    try:
        return CatalogStore(conn).get_record(book_id)
    finally:
        conn.close()


@pytest.fixture(autouse=True)
def fake_providers() -> Iterator[FakeProvider]:
    """Replace network providers with a canned Open Library answer."""
    provider = FakeProvider(MetadataProvider.OPEN_LIBRARY, ANSWER, candidates=CHOICES)
    with patch(
        "shelfkeeper.cli.session.default_registry",
        return_value=ProviderRegistry([provider]),
    ):
        yield provider


def latest_job_id(db_path: Path) -> str:
    conn = open_catalog(db_path)
    try:
        return JobStore(conn).list_jobs()[0].id
    finally:
        conn.close()


@pytest.fixture
def catalog(db_path: Path, library_root: Path, sample_epub: Path, tmp_path: Path) -> Path:
    """A database with library Main holding the imported sample EPUB as book 1."""
    assert run(db_path, "settings", "set", "covers_dir", str(tmp_path / "covers")).exit_code == 0
    assert run(db_path, "library", "add", "Main", str(library_root)).exit_code == 0
    assert run(db_path, "import", "Main").exit_code == 0
    return db_path


class TestBasics:
    """Group-level behavior."""

    def test_help_lists_commands(self) -> None:
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("library", "import", "refresh", "jobs", "proposals", "edit", "consolidate"):
            assert name in result.output


class TestLibraryAndImport:
    """E2E tests for `library` and `import`."""

    def test_library_add_and_ls(self, db_path: Path, library_root: Path) -> None:
        result = run(db_path, "library", "add", "Main", str(library_root))
        assert result.exit_code == 0
        assert "Added library" in result.output

        listing = run(db_path, "library", "ls")
        assert "Main" in listing.output

    def test_empty_library_list(self, db_path: Path) -> None:
        assert "No libraries" in run(db_path, "library", "ls").output

    def test_import_summary(
        self, db_path: Path, library_root: Path, sample_epub: Path, corrupt_epub: Path
    ) -> None:
        run(db_path, "library", "add", "Main", str(library_root))
        result = run(db_path, "import", "Main")
        assert result.exit_code == 0
        assert "1 added" in result.output
        assert "1 error(s)" in result.output
        assert "corrupt.epub" in result.output

    def test_reimport_skips(self, catalog: Path) -> None:
        result = run(catalog, "import", "Main")
        assert "1 skipped" in result.output

    def test_import_unknown_library(self, db_path: Path) -> None:
        result = run(db_path, "import", "Nope")
        assert result.exit_code == 1
        assert "not found" in result.output


class TestRefresh:
    """E2E tests for `refresh`."""

    def test_refresh_book_applies_metadata(self, catalog: Path) -> None:
        result = run(catalog, "refresh", "1")
        assert result.exit_code == 0, result.output
        assert "COMPLETED" in result.output
        assert "1/1 book(s) processed" in result.output

        record = load(catalog)
        assert record.title == "The Left Hand of Darkness"
        assert record.series_name == "Hainish"
        assert record.page_count == 304

    def test_refresh_library(self, catalog: Path) -> None:
        result = run(catalog, "refresh", "--library", "Main")
        assert result.exit_code == 0, result.output
        assert load(catalog).series_name == "Hainish"

    def test_needs_books_or_library(self, catalog: Path) -> None:
        assert run(catalog, "refresh").exit_code == 1
        assert run(catalog, "refresh", "1", "--library", "Main").exit_code == 1

    def test_unknown_library(self, catalog: Path) -> None:
        result = run(catalog, "refresh", "--library", "Nope")
        assert result.exit_code == 1

    def test_missing_book_reported_not_fatal(self, catalog: Path) -> None:
        result = run(catalog, "refresh", "1", "99")
        assert result.exit_code == 0
        assert "Failed to process" in result.output
        assert "2/2 book(s) processed" in result.output


class TestReviewFlow:
    """E2E tests for review-mode refresh, `jobs`, and `proposals`."""

    def test_review_then_accept(self, catalog: Path) -> None:
        result = run(catalog, "refresh", "1", "--review")
        assert result.exit_code == 0, result.output
        assert "proposals review" in result.output
        assert load(catalog).series_name is None

        job_id = latest_job_id(catalog)
        listing = run(catalog, "proposals", "ls", job_id)
        assert "Left Hand" in listing.output
        assert "FETCHED" in listing.output

        accepted = run(catalog, "proposals", "accept", job_id, "1", "--reviewer", "ann")
        assert accepted.exit_code == 0, accepted.output
        record = load(catalog)
        assert record.series_name == "Hainish"
        assert record.title == "Left Hand"

    def test_reject_leaves_book(self, catalog: Path) -> None:
        run(catalog, "refresh", "1", "--review")
        job_id = latest_job_id(catalog)
        result = run(catalog, "proposals", "reject", job_id, "1")
        assert result.exit_code == 0
        assert load(catalog).series_name is None
        assert "REJECTED" in run(catalog, "proposals", "ls", job_id, "--status", "rejected").output

    def test_interactive_review(self, catalog: Path) -> None:
        run(catalog, "refresh", "1", "--review")
        job_id = latest_job_id(catalog)
        result = run(catalog, "proposals", "review", job_id, input="a\n")
        assert result.exit_code == 0, result.output
        assert "1 accepted" in result.output
        assert "Nothing left to review" in run(catalog, "proposals", "review", job_id).output

    def test_bad_status_filter(self, catalog: Path) -> None:
        run(catalog, "refresh", "1", "--review")
        job_id = latest_job_id(catalog)
        result = run(catalog, "proposals", "ls", job_id, "--status", "maybe")
        assert result.exit_code == 2

    def test_jobs_ls_show_cancel_rm(self, catalog: Path) -> None:
        run(catalog, "refresh", "1", "--review")
        job_id = latest_job_id(catalog)

        assert job_id in run(catalog, "jobs", "ls").output
        assert "need review" in run(catalog, "jobs", "ls", "--active").output

        shown = run(catalog, "jobs", "show", job_id)
        assert "COMPLETED" in shown.output
        assert "1 fetched" in shown.output

        assert "already finished" in run(catalog, "jobs", "cancel", job_id).output

        assert run(catalog, "jobs", "rm", job_id).exit_code == 0
        assert "No refresh jobs" in run(catalog, "jobs", "ls").output

    def test_unknown_job(self, catalog: Path) -> None:
        assert run(catalog, "jobs", "show", "nope").exit_code == 1
        assert run(catalog, "jobs", "cancel", "nope").exit_code == 1
        assert run(catalog, "jobs", "rm", "nope").exit_code == 1
        assert run(catalog, "proposals", "ls", "nope").exit_code == 1


class TestEdit:
    """E2E tests for `edit` and `candidates`."""

    def test_set_lock_and_clear(self, catalog: Path) -> None:
        result = run(
            catalog,
            "edit",
            "1",
            "--set",
            "title=Gethen",
            "--set",
            "categories=SF;Classics",
            "--clear",
            "publisher",
            "--lock",
            "title",
        )
        assert result.exit_code == 0, result.output
        assert "Updated" in result.output
        record = load(catalog)
        assert record.title == "Gethen"
        assert record.categories == ["SF", "Classics"]
        assert record.publisher is None
        assert record.locked == {"title"}

    def test_locked_field_survives_refresh(self, catalog: Path) -> None:
        run(catalog, "edit", "1", "--set", "title=Gethen", "--lock", "title")
        run(catalog, "refresh", "1", "--review")
        job_id = latest_job_id(catalog)
        run(catalog, "proposals", "accept", job_id, "1")
        assert load(catalog).title == "Gethen"

    def test_nothing_changed(self, catalog: Path) -> None:
        result = run(catalog, "edit", "1", "--set", "title=The Left Hand of Darkness")
        assert "Nothing changed" in result.output

    def test_bad_input(self, catalog: Path) -> None:
        assert run(catalog, "edit", "1", "--set", "page_count=lots").exit_code == 1
        assert run(catalog, "edit", "1", "--clear", "shelf").exit_code == 1
        assert run(catalog, "edit", "99", "--set", "title=x").exit_code == 1

    def test_candidates_list_and_apply(self, catalog: Path) -> None:
        listing = run(catalog, "candidates", "1")
        assert "Choice One" in listing.output
        assert "Choice Two" in listing.output

        applied = run(catalog, "candidates", "1", "--apply", "1")
        assert applied.exit_code == 0, applied.output
        assert load(catalog).title == "Choice One"

    def test_candidates_bad_index(self, catalog: Path) -> None:
        assert run(catalog, "candidates", "1", "--apply", "5").exit_code == 1

    def test_candidates_unknown_provider(self, catalog: Path) -> None:
        assert run(catalog, "candidates", "1", "--provider", "Amazon").exit_code == 1


class TestConsolidate:
    """E2E tests for `consolidate` and `scores`."""

    def test_merge_authors(self, catalog: Path) -> None:
        result = run(catalog, "consolidate", "merge", "authors", "Ursula K. Le Guin", "--into", "U. Le Guin")
        assert result.exit_code == 0, result.output
        assert "1 book(s) updated" in result.output
        assert load(catalog).authors == ["U. Le Guin"]

    def test_series_needs_single_target(self, catalog: Path) -> None:
        result = run(catalog, "consolidate", "merge", "series", "x", "--into", "a", "--into", "b")
        assert result.exit_code == 1
        assert "exactly one target" in result.output

    def test_delete_publisher(self, catalog: Path) -> None:
        result = run(catalog, "consolidate", "delete", "publishers", "ace books")
        assert result.exit_code == 0
        assert load(catalog).publisher is None

    def test_delete_nothing_matching(self, catalog: Path) -> None:
        result = run(catalog, "consolidate", "delete", "tags", "none-such")
        assert "No matching values" in result.output

    def test_scores_recalc(self, catalog: Path) -> None:
        run(catalog, "settings", "weight", "title", "0")
        result = run(catalog, "scores", "recalc")
        assert result.exit_code == 0
        assert "1 changed" in result.output


class TestSettings:
    """E2E tests for `settings`."""

    def test_set_and_show(self, db_path: Path) -> None:
        assert run(db_path, "settings", "set", "file_pattern", "{series}/{title}").exit_code == 0
        shown = run(db_path, "settings", "show")
        assert "{series}/{title}" in shown.output
        assert "Match Weights" in shown.output

    def test_bad_boolean(self, db_path: Path) -> None:
        result = run(db_path, "settings", "set", "save_to_original_file", "maybe")
        assert result.exit_code == 1

    def test_providers(self, db_path: Path) -> None:
        result = run(db_path, "settings", "providers", "google", "openlibrary")
        assert result.exit_code == 0
        assert "Google" in result.output
        assert run(db_path, "settings", "providers", "Borders").exit_code == 1

    def test_unknown_weight(self, db_path: Path) -> None:
        assert run(db_path, "settings", "weight", "shelf", "2").exit_code == 1

    def test_refresh_options_per_library(self, catalog: Path) -> None:
        result = run(
            catalog,
            "settings",
            "refresh",
            "--library",
            "Main",
            "--review",
            "--authority",
            "title=Hardcover,OpenLibrary",
            "--disable",
            "description",
        )
        assert result.exit_code == 0, result.output

        refreshed = run(catalog, "refresh", "--library", "Main")
        assert "proposals review" in refreshed.output

    def test_refresh_options_too_many_providers(self, db_path: Path) -> None:
        result = run(
            db_path,
            "settings",
            "refresh",
            "--authority",
            "title=Amazon,Google,GoodReads,Hardcover,Douban",
        )
        assert result.exit_code == 1
        assert "at most 4" in result.output
