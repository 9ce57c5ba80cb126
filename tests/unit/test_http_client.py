# ABOUTME: Unit tests for the provider HTTP client.
# ABOUTME: Drives ShelfkeeperHttpClient through a fake httpx transport: JSON, bytes, retries, failures.

from unittest.mock import patch

import httpx
import pytest

from shelfkeeper.metadata.http import HttpClient, MetadataFetchError, ShelfkeeperHttpClient


class FakeTransport(httpx.BaseTransport):
    """httpx transport replaying queued responses and recording request URLs."""

    def __init__(self, responses: list[httpx.Response] | None = None, error: Exception | None = None) -> None:
        self._responses = list(responses or [])
        self._error = error
        self.urls: list[str] = []

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        if self._error is not None:
            raise self._error
        if self._responses:
            return self._responses.pop(0)
        return httpx.Response(200, json={"ok": True})


def _client(transport: FakeTransport, **kwargs) -> ShelfkeeperHttpClient:
    kwargs.setdefault("min_request_interval", 0.0)
    kwargs.setdefault("retry_delay", 0.0)
    return ShelfkeeperHttpClient(transport=transport, **kwargs)


class TestShelfkeeperHttpClient:
    """Tests for ShelfkeeperHttpClient."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(_client(FakeTransport()), HttpClient)

    def test_get_parses_json_and_sends_params(self) -> None:
        transport = FakeTransport([httpx.Response(200, json={"numFound": 0})])
        result = _client(transport).get("https://openlibrary.org/search.json", params={"q": "dune"})
        assert result == {"numFound": 0}
        assert transport.urls == ["https://openlibrary.org/search.json?q=dune"]

    def test_get_bytes_returns_body(self) -> None:
        transport = FakeTransport([httpx.Response(200, content=b"\xff\xd8\xffjpeg")])
        assert _client(transport).get_bytes("https://covers.example/1.jpg") == b"\xff\xd8\xffjpeg"

    def test_user_agent_names_project(self) -> None:
        client = _client(FakeTransport())
        assert client._client.headers["user-agent"].startswith("shelfkeeper/")

    def test_not_found_is_not_retried(self) -> None:
        transport = FakeTransport([httpx.Response(404)])
        with pytest.raises(MetadataFetchError, match="HTTP 404"):
            _client(transport).get("https://openlibrary.org/isbn/0.json")
        assert len(transport.urls) == 1

    def test_server_error_retried_then_succeeds(self) -> None:
        transport = FakeTransport([
            httpx.Response(503),
            httpx.Response(429),
            httpx.Response(200, json={"title": "Dune"}),
        ])
        assert _client(transport).get("https://openlibrary.org/works/OL1W.json") == {"title": "Dune"}
        assert len(transport.urls) == 3

    def test_retries_exhausted(self) -> None:
        transport = FakeTransport([httpx.Response(500)] * 3)
        with pytest.raises(MetadataFetchError, match="after 3 attempts"):
            _client(transport, max_retries=2).get("https://openlibrary.org/works/OL1W.json")
        assert len(transport.urls) == 3

    def test_transport_error_wrapped(self) -> None:
        transport = FakeTransport(error=httpx.ConnectError("refused"))
        with pytest.raises(MetadataFetchError, match="Request failed"):
            _client(transport).get_bytes("https://covers.example/1.jpg")

    def test_retry_after_header_honored(self) -> None:
        transport = FakeTransport([
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json={}),
        ])
        with patch("shelfkeeper.metadata.http.time.sleep") as sleep:
            _client(transport).get("https://openlibrary.org/search.json")
        sleep.assert_called_once_with(7.0)

    def test_retry_after_capped(self) -> None:
        transport = FakeTransport([
            httpx.Response(503, headers={"Retry-After": "3600"}),
            httpx.Response(200, json={}),
        ])
        with patch("shelfkeeper.metadata.http.time.sleep") as sleep:
            _client(transport).get("https://openlibrary.org/search.json")
        sleep.assert_called_once_with(30.0)

    def test_oversized_cover_refused(self) -> None:
        transport = FakeTransport([httpx.Response(200, content=b"x" * 11)])
        with pytest.raises(MetadataFetchError, match="limit is 10"):
            _client(transport, max_cover_bytes=10).get_bytes("https://covers.example/big.jpg")

    def test_non_json_body(self) -> None:
        transport = FakeTransport([httpx.Response(200, content=b"<html>")])
        with pytest.raises(MetadataFetchError, match="Invalid JSON"):
            _client(transport).get("https://openlibrary.org/isbn/0.json")
