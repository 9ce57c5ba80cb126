# ABOUTME: Public API for the Shelfkeeper catalog database layer.
# ABOUTME: Exports connection management, catalog and job stores, and record types.

from shelfkeeper.db.catalog import (
    CatalogStore,
    DuplicateBookError,
    Library,
    LibraryNotFoundError,
    RecordNotFoundError,
)
from shelfkeeper.db.connection import DEFAULT_DB_PATH, open_catalog
from shelfkeeper.db.jobs import JobNotFoundError, JobStatus, JobStore, ProposalStatus
from shelfkeeper.db.mapping import CatalogRecord

__all__ = [
    "DEFAULT_DB_PATH",
    "CatalogRecord",
    "CatalogStore",
    "DuplicateBookError",
    "JobNotFoundError",
    "JobStatus",
    "JobStore",
    "Library",
    "LibraryNotFoundError",
    "ProposalStatus",
    "RecordNotFoundError",
    "open_catalog",
]
