"""Unit tests for the log-pull HTTP client."""

import gzip
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from logvault.config import UpstreamConfig
from logvault.domain.shared.error import (
    NotYetAvailableError,
    RateLimitedError,
    UpstreamError,
    WindowExpiredError,
    WindowTooLargeError,
)
from logvault.infrastructure.upstream.client import (
    DEFAULT_RETRY_AFTER,
    LogpullClient,
    parse_retry_after,
)

NOW = datetime(2024, 1, 1, 10, 5, tzinfo=UTC)
START = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
END = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)
RAW = b'{"RayID":"1"}\n{"RayID":"2"}\n'


def make_client(handler, **config) -> tuple[LogpullClient, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    cfg = UpstreamConfig(api_token="tok", **config)
    return LogpullClient(http, cfg, clock=lambda: NOW), requests


class TestWindowPreconditions:
    @pytest.mark.parametrize(
        ("start", "end", "error"),
        [
            (START - timedelta(minutes=1), END, WindowTooLargeError),
            (END - timedelta(minutes=59), NOW - timedelta(seconds=30), NotYetAvailableError),
            (START - timedelta(days=8), END - timedelta(days=8), WindowExpiredError),
        ],
    )
    async def test_rejected_before_any_request(self, start, end, error):
        client, requests = make_client(lambda r: httpx.Response(200, content=RAW))

        with pytest.raises(error):
            await client.fetch("zone", start, end)

        assert requests == []

    async def test_exactly_one_hour_and_one_minute_old_is_allowed(self):
        client, requests = make_client(lambda r: httpx.Response(200, content=RAW))
        end = NOW - timedelta(minutes=1)

        await client.fetch("zone", end - timedelta(hours=1), end)

        assert len(requests) == 1


class TestFetch:
    async def test_request_shape(self):
        client, requests = make_client(lambda r: httpx.Response(200, content=RAW))

        data = await client.fetch("zone123", START, END, fields=["RayID", "ClientIP"])

        assert data == RAW
        (request,) = requests
        assert request.url.path == "/client/v4/zones/zone123/logs/received"
        assert request.url.params["start"] == "2024-01-01T09:00:00Z"
        assert request.url.params["end"] == "2024-01-01T10:00:00Z"
        assert request.url.params["fields"] == "RayID,ClientIP"
        assert request.url.params["timestamps"] == "rfc3339"
        assert request.headers["Authorization"] == "Bearer tok"

    async def test_default_fields_from_config(self):
        client, requests = make_client(lambda r: httpx.Response(200, content=RAW), fields=["A"])

        await client.fetch("zone", START, END)

        assert requests[0].url.params["fields"] == "A"

    async def test_bare_gzip_body_is_decompressed(self):
        client, _ = make_client(lambda r: httpx.Response(200, content=gzip.compress(RAW)))

        assert await client.fetch("zone", START, END) == RAW

    async def test_content_encoding_gzip_is_decompressed(self):
        client, _ = make_client(
            lambda r: httpx.Response(
                200, content=gzip.compress(RAW), headers={"Content-Encoding": "gzip"}
            )
        )

        assert await client.fetch("zone", START, END) == RAW

    async def test_empty_body(self):
        client, _ = make_client(lambda r: httpx.Response(200, content=b""))

        assert await client.fetch("zone", START, END) == b""


class TestErrors:
    async def test_non_success_carries_status_and_bounded_snippet(self):
        body = b"x" * 10_000
        client, _ = make_client(
            lambda r: httpx.Response(500, content=body), error_snippet_bytes=128
        )

        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch("zone", START, END)

        assert exc_info.value.status_code == 500
        assert len(exc_info.value.body) == 128

    async def test_rate_limit(self):
        client, _ = make_client(
            lambda r: httpx.Response(429, content=b"slow down", headers={"Retry-After": "12"})
        )

        with pytest.raises(RateLimitedError) as exc_info:
            await client.fetch("zone", START, END)

        assert exc_info.value.retry_after == 12.0
        assert exc_info.value.status_code == 429

    async def test_transport_error_is_wrapped(self):
        def boom(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client, _ = make_client(boom)

        with pytest.raises(UpstreamError) as exc_info:
            await client.fetch("zone", START, END)

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestParseRetryAfter:
    def test_seconds(self):
        assert parse_retry_after("30", NOW) == 30.0

    def test_http_date(self):
        assert parse_retry_after("Mon, 01 Jan 2024 10:05:45 GMT", NOW) == 45.0

    def test_date_in_past_is_zero(self):
        assert parse_retry_after("Mon, 01 Jan 2024 10:00:00 GMT", NOW) == 0.0

    @pytest.mark.parametrize("value", [None, "", "soon"])
    def test_missing_or_garbage_uses_default(self, value):
        assert parse_retry_after(value, NOW) == DEFAULT_RETRY_AFTER
