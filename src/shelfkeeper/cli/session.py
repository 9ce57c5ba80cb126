# ABOUTME: Opens the catalog and engine services for one CLI invocation.
# ABOUTME: Closes the database connection and HTTP client however the command exits.

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from shelfkeeper.core.editing import MetadataService
from shelfkeeper.core.jobs import JobService
from shelfkeeper.core.services import ServiceFactory, default_registry
from shelfkeeper.db.catalog import CatalogStore
from shelfkeeper.db.connection import DEFAULT_DB_PATH, open_catalog
from shelfkeeper.metadata.http import ShelfkeeperHttpClient
from shelfkeeper.notifications import EventBus
from shelfkeeper.settings import AppSettings, SettingsStore


@dataclass
class CliSession:
    """Everything a command needs, bound to one database."""

    store: CatalogStore
    services: ServiceFactory
    events: EventBus

    @property
    def settings_store(self) -> SettingsStore:
        return SettingsStore(self.store.connection)

    @property
    def settings(self) -> AppSettings:
        return self.settings_store.load()

    def jobs(self) -> JobService:
        return JobService(self.store.connection, self.services)

    def editor(self) -> MetadataService:
        return MetadataService(
            self.store,
            self.services.updater(self.store, self.settings),
            self.services.registry,
        )


@contextmanager
def open_session(db_path: Path | None) -> Iterator[CliSession]:
    path = db_path or DEFAULT_DB_PATH
    conn = open_catalog(path)
    timeout = SettingsStore(conn).load().provider_timeout
    http_client = ShelfkeeperHttpClient(timeout=timeout)
    events = EventBus()
    try:
        services = ServiceFactory(
            connect=partial(open_catalog, path),
            registry=default_registry(http_client),
            notifier=events,
            http_client=http_client,
        )
        yield CliSession(store=CatalogStore(conn), services=services, events=events)
    finally:
        http_client.close()
        conn.close()
