# ABOUTME: Builds engine collaborators (updater, orchestrator, registry) around a catalog connection.
# ABOUTME: Worker threads ask the factory for their own connection-bound services.

import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from shelfkeeper.core.cancellation import CancellationRegistry, StoredCancellation
from shelfkeeper.core.refresh import RefreshOrchestrator
from shelfkeeper.core.updater import MetadataUpdater
from shelfkeeper.db.catalog import CatalogStore
from shelfkeeper.db.jobs import JobStore
from shelfkeeper.files.covers import CoverStore
from shelfkeeper.files.mover import LibraryFileMover
from shelfkeeper.formats.epub import EpubMetadataWriter
from shelfkeeper.metadata.http import HttpClient
from shelfkeeper.metadata.openlibrary import OpenLibraryClient
from shelfkeeper.metadata.provider import ProviderRegistry
from shelfkeeper.notifications import EventBus, Notifier
from shelfkeeper.settings import AppSettings, SettingsStore

ConnectionFactory = Callable[[], sqlite3.Connection]


def default_registry(http_client: HttpClient) -> ProviderRegistry:
    """Registry with every concrete provider client."""
    return ProviderRegistry([OpenLibraryClient(http_client)])


@dataclass
class ServiceFactory:
    """Shared, connection-independent collaborators of the metadata engine.

    ``cancellation`` None means each connection gets a store-backed registry,
    so a cancel issued from another process is seen by a running job.
    """

    connect: ConnectionFactory
    registry: ProviderRegistry
    notifier: Notifier = field(default_factory=EventBus)
    http_client: HttpClient | None = None
    cancellation: CancellationRegistry | None = None
    delay: Callable[[float], None] = time.sleep

    def settings(self, conn: sqlite3.Connection) -> AppSettings:
        return SettingsStore(conn).load()

    def cancellation_for(self, conn: sqlite3.Connection) -> CancellationRegistry:
        if self.cancellation is not None:
            return self.cancellation
        return StoredCancellation(conn)

    def updater(self, store: CatalogStore, settings: AppSettings) -> MetadataUpdater:
        return MetadataUpdater(
            store,
            settings,
            file_writers=[EpubMetadataWriter(self.http_client)],
            file_mover=LibraryFileMover(store, settings.file_pattern),
            covers=CoverStore(Path(settings.covers_dir), self.http_client),
        )

    def orchestrator(
        self,
        conn: sqlite3.Connection,
        cancellation: CancellationRegistry | None = None,
    ) -> RefreshOrchestrator:
        store = CatalogStore(conn)
        settings = self.settings(conn)
        return RefreshOrchestrator(
            store,
            JobStore(conn),
            settings,
            self.registry,
            self.updater(store, settings),
            self.notifier,
            cancellation or self.cancellation_for(conn),
            delay=self.delay,
        )
