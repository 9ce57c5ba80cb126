# ABOUTME: ProviderClient protocol and registry for external metadata sources.
# ABOUTME: Any source (Open Library, Google Books, etc.) implements this to join a refresh.

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from shelfkeeper.db.mapping import CatalogRecord
from shelfkeeper.metadata.types import CandidateMetadata, MetadataProvider, UnknownProviderError


@dataclass(frozen=True)
class BookHint:
    """What a provider gets to search with for one book."""

    title: str | None = None
    authors: tuple[str, ...] = ()
    isbn13: str | None = None
    isbn10: str | None = None
    ids: dict[str, str] = field(default_factory=dict)

    @property
    def isbn(self) -> str | None:
        return self.isbn13 or self.isbn10

    @classmethod
    def from_record(cls, record: CatalogRecord) -> "BookHint":
        ids = {
            name: str(getattr(record, name))
            for name in ("asin", "goodreads_id", "hardcover_id", "google_id", "comicvine_id")
            if getattr(record, name)
        }
        title = record.title
        if not title and record.file_name:
            title = record.file_name.rsplit(".", 1)[0]
        return cls(
            title=title,
            authors=tuple(record.authors),
            isbn13=record.isbn13,
            isbn10=record.isbn10,
            ids=ids,
        )


@runtime_checkable
class ProviderClient(Protocol):
    """Protocol for metadata lookup services.

    ``fetch_top_candidate`` serves batch refreshes; ``fetch_candidates``
    serves interactive "choose a match" flows.
    """

    @property
    def provider(self) -> MetadataProvider: ...

    def fetch_top_candidate(self, hint: BookHint) -> CandidateMetadata | None: ...

    def fetch_candidates(self, hint: BookHint, limit: int = 5) -> list[CandidateMetadata]: ...


class ProviderRegistry:
    """Maps provider ids to client instances."""

    def __init__(self, clients: list[ProviderClient] | None = None) -> None:
        self._clients: dict[MetadataProvider, ProviderClient] = {}
        for client in clients or []:
            self.register(client)

    def register(self, client: ProviderClient) -> None:
        self._clients[client.provider] = client

    def get(self, provider: MetadataProvider) -> ProviderClient:
        """Return the client for a provider.

        Raises:
            UnknownProviderError: If no client is registered for it.
        """
        try:
            return self._clients[provider]
        except KeyError:
            raise UnknownProviderError(f"No client registered for {provider.value}") from None

    def __contains__(self, provider: object) -> bool:
        return provider in self._clients

    @property
    def available(self) -> list[MetadataProvider]:
        return [p for p in MetadataProvider if p in self._clients]
