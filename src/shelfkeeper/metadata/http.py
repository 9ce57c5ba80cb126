# ABOUTME: HTTP transport shared by provider clients, cover downloads, and EPUB cover embedding.
# ABOUTME: One pooled httpx.Client with request pacing, bounded retries, and a cover size cap.

import logging
import threading
import time
from typing import Any, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = frozenset({429, 500, 502, 503, 504})
MAX_COVER_BYTES = 10 * 1024 * 1024
MAX_RETRY_AFTER = 30.0


class MetadataFetchError(Exception):
    """Raised when an HTTP request to a metadata provider fails."""


@runtime_checkable
class HttpClient(Protocol):
    """What provider clients and the cover store need from HTTP."""

    def get(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]: ...

    def get_bytes(self, url: str) -> bytes: ...


def _retry_after(response: httpx.Response) -> float | None:
    """Seconds requested by a Retry-After header, capped; None when absent or a date."""
    raw = response.headers.get("retry-after", "").strip()
    if not raw.isdigit():
        return None
    return min(float(raw), MAX_RETRY_AFTER)


class ShelfkeeperHttpClient:
    """Thread-safe HTTP client for provider lookups and cover images.

    Requests are spaced at least ``min_request_interval`` apart across all
    threads. 429 and 5xx answers are retried with exponential backoff, or
    after the server's Retry-After delay when it sends one.
    """

    def __init__(
        self,
        *,
        min_request_interval: float = 0.1,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        max_cover_bytes: int = MAX_COVER_BYTES,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            headers={"User-Agent": "shelfkeeper/0.1.0"},
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )
        self._min_interval = min_request_interval
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._max_cover_bytes = max_cover_bytes
        self._next_slot = 0.0
        self._pacing = threading.Lock()

    def get(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET ``url`` and decode the JSON body.

        Raises:
            MetadataFetchError: On a failed request or a body that is not JSON.
        """
        response = self._send(url, params)
        try:
            return response.json()
        except ValueError as exc:
            raise MetadataFetchError(f"Invalid JSON from {url}") from exc

    def get_bytes(self, url: str) -> bytes:
        """GET ``url`` and return the raw body, refusing bodies over the cover cap.

        Raises:
            MetadataFetchError: On a failed request or an oversized body.
        """
        content = self._send(url, None).content
        if len(content) > self._max_cover_bytes:
            raise MetadataFetchError(
                f"Body of {url} is {len(content)} bytes, limit is {self._max_cover_bytes}"
            )
        return content

    def close(self) -> None:
        self._client.close()

    def _send(self, url: str, params: dict[str, str] | None) -> httpx.Response:
        attempts = self._max_retries + 1
        status = 0
        for attempt in range(1, attempts + 1):
            self._wait_for_slot()
            try:
                response = self._client.get(url, params=params)
            except httpx.HTTPError as exc:
                raise MetadataFetchError(f"Request failed: {url}: {exc}") from exc

            status = response.status_code
            if status == 200:
                return response
            if status not in TRANSIENT_STATUSES:
                raise MetadataFetchError(f"HTTP {status} from {url}")
            if attempt == attempts:
                break

            delay = _retry_after(response)
            if delay is None:
                delay = self._retry_delay * 2 ** (attempt - 1)
            logger.warning(
                "HTTP %d from %s, retry %d/%d in %.1fs",
                status,
                url,
                attempt,
                self._max_retries,
                delay,
            )
            time.sleep(delay)

        raise MetadataFetchError(f"HTTP {status} from {url} after {attempts} attempts")

    def _wait_for_slot(self) -> None:
        """Block until this thread may send, reserving the following slot for the next caller."""
        if self._min_interval <= 0:
            return
        with self._pacing:
            now = time.monotonic()
            start = max(now, self._next_slot)
            self._next_slot = start + self._min_interval
        if start > now:
            time.sleep(start - now)
