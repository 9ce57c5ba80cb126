# ABOUTME: Cover thumbnail storage from URLs, raw bytes, or uploaded files.
# ABOUTME: Also guards cover URLs against loopback and private-network targets.

import ipaddress
import logging
import socket
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import urlparse

from shelfkeeper.metadata.http import HttpClient

logger = logging.getLogger(__name__)

_IMAGE_SIGNATURES: dict[bytes, str] = {
    b"\xff\xd8\xff": ".jpg",
    b"\x89PNG\r\n\x1a\n": ".png",
    b"GIF87a": ".gif",
    b"GIF89a": ".gif",
}

HostResolver = Callable[[str], Iterable[str]]


class CoverError(Exception):
    """Raised when cover data is missing or not a recognized image."""


@runtime_checkable
class ThumbnailService(Protocol):
    def create_from_url(self, book_id: int, url: str) -> Path: ...

    def create_from_bytes(self, book_id: int, data: bytes) -> Path: ...

    def create_from_upload(self, book_id: int, upload: Path) -> Path: ...


def resolve_host(host: str) -> list[str]:
    """Resolve a hostname to every address it maps to."""
    return [info[4][0] for info in socket.getaddrinfo(host, None)]


def is_local_or_private_url(url: str, resolver: HostResolver = resolve_host) -> bool:
    """True if a URL points at this machine or a private network.

    Hosts are resolved and every address checked. URLs that cannot be
    parsed or resolved count as local, so they are never fetched.
    """
    try:
        host = urlparse(url).hostname
        if not host:
            return True
        if host.lower() in ("localhost", "127.0.0.1"):
            return True
        for address in resolver(host):
            ip = ipaddress.ip_address(address.split("%", 1)[0])
            if ip.version == 6 and ip.ipv4_mapped is not None:
                ip = ip.ipv4_mapped
            if (
                ip.is_loopback
                or ip.is_private
                or ip.is_link_local
                or ip.is_unspecified
                or (ip.version == 6 and ip.is_site_local)
            ):
                return True
        return False
    except (ValueError, OSError) as exc:
        logger.debug("Treating %s as local: %s", url, exc)
        return True


def _image_extension(data: bytes) -> str:
    for signature, extension in _IMAGE_SIGNATURES.items():
        if data.startswith(signature):
            return extension
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ".webp"
    raise CoverError("Cover data is not a recognized image")


class CoverStore:
    """Stores one cover image per book under a covers directory."""

    def __init__(self, covers_dir: Path, http_client: HttpClient | None = None) -> None:
        self._dir = covers_dir
        self._http = http_client

    def path_for(self, book_id: int) -> Path | None:
        matches = sorted(self._dir.glob(f"{book_id}.*")) if self._dir.exists() else []
        return matches[0] if matches else None

    def create_from_url(self, book_id: int, url: str) -> Path:
        """Download an image and store it as the book's cover.

        Raises:
            CoverError: If no HTTP client is configured or the data is not an image.
            MetadataFetchError: If the download fails.
        """
        if self._http is None:
            raise CoverError("No HTTP client configured for cover downloads")
        return self.create_from_bytes(book_id, self._http.get_bytes(url))

    def create_from_bytes(self, book_id: int, data: bytes) -> Path:
        """Store raw image bytes as the book's cover, replacing any previous one."""
        if not data:
            raise CoverError("Cover data is empty")
        extension = _image_extension(data)
        self._dir.mkdir(parents=True, exist_ok=True)
        for old in self._dir.glob(f"{book_id}.*"):
            old.unlink()
        target = self._dir / f"{book_id}{extension}"
        target.write_bytes(data)
        logger.debug("Stored cover for book %d at %s", book_id, target)
        return target

    def create_from_upload(self, book_id: int, upload: Path) -> Path:
        """Store an uploaded image file as the book's cover."""
        return self.create_from_bytes(book_id, upload.read_bytes())
