"""HTTP adapter for the LogSource port (edge log-pull API)."""

import gzip
import logging
import zlib
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime

import httpx

from logvault.config import UpstreamConfig
from logvault.domain.archive.port.log_source import LogSource
from logvault.domain.shared.error import (
    NotYetAvailableError,
    RateLimitedError,
    UpstreamError,
    WindowExpiredError,
    WindowTooLargeError,
)

GZIP_MAGIC = b"\x1f\x8b"
DEFAULT_RETRY_AFTER = 30.0

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _rfc3339(dt: datetime) -> str:
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_retry_after(value: str | None, now: datetime) -> float:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP date)."""
    if not value:
        return DEFAULT_RETRY_AFTER
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - now).total_seconds())


class LogpullClient(LogSource):
    """Fetches one window of raw NDJSON logs for a zone.

    Window constraints are checked before any request is made, since no
    amount of retrying would make an oversized, too-recent or too-old window
    servable. Bodies come back decompressed whether the API used
    Content-Encoding or sent a bare gzip stream.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: UpstreamConfig,
        *,
        clock: Clock = _utc_now,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

    def check_window(self, start: datetime, end: datetime) -> None:
        cfg = self._config
        now = self._clock()
        if end - start > cfg.max_window:
            raise WindowTooLargeError(
                f"window {_rfc3339(start)}..{_rfc3339(end)} exceeds {cfg.max_window}"
            )
        if now - end < cfg.min_delay:
            raise NotYetAvailableError(
                f"logs ending {_rfc3339(end)} are not available until {cfg.min_delay} later"
            )
        if start < now - timedelta(days=cfg.retention_days):
            raise WindowExpiredError(
                f"window start {_rfc3339(start)} is older than the upstream's "
                f"{cfg.retention_days}-day retention"
            )

    async def fetch(
        self,
        zone_id: str,
        start: datetime,
        end: datetime,
        fields: Sequence[str] | None = None,
    ) -> bytes:
        self.check_window(start, end)

        url = f"{self._config.base_url.rstrip('/')}/zones/{zone_id}/logs/received"
        params = {
            "start": _rfc3339(start),
            "end": _rfc3339(end),
            "timestamps": "rfc3339",
            "fields": ",".join(fields or self._config.fields),
        }
        headers = {
            "Authorization": f"Bearer {self._config.api_token}",
            "Accept-Encoding": "gzip",
        }

        self._log.debug("Fetching logs for zone %s %s..%s", zone_id, params["start"], params["end"])
        try:
            async with self._client.stream(
                "GET",
                url,
                params=params,
                headers=headers,
                timeout=self._config.request_timeout,
            ) as response:
                if not response.is_success:
                    await self._raise_for_status(response)
                body = await response.aread()
        except httpx.HTTPError as e:
            raise UpstreamError(f"upstream request for zone {zone_id} failed: {e}") from e

        data = self._decompress(body)
        self._log.info(
            "Fetched %d bytes of logs for zone %s %s..%s",
            len(data),
            zone_id,
            params["start"],
            params["end"],
        )
        return data

    async def _raise_for_status(self, response: httpx.Response) -> None:
        snippet = await self._read_snippet(response)
        status = response.status_code
        if status == httpx.codes.TOO_MANY_REQUESTS:
            retry_after = parse_retry_after(response.headers.get("Retry-After"), self._clock())
            self._log.warning("Upstream rate limited, retry after %ss", retry_after)
            raise RateLimitedError(retry_after=retry_after, body=snippet)
        raise UpstreamError(
            f"upstream returned {status}: {snippet[:200]}",
            status_code=status,
            body=snippet,
        )

    async def _read_snippet(self, response: httpx.Response) -> str:
        """Read at most `error_snippet_bytes` of an error body."""
        limit = self._config.error_snippet_bytes
        buf = bytearray()
        async for chunk in response.aiter_bytes():
            buf.extend(chunk)
            if len(buf) >= limit:
                break
        return bytes(buf[:limit]).decode("utf-8", errors="replace")

    def _decompress(self, body: bytes) -> bytes:
        if not body.startswith(GZIP_MAGIC):
            return body
        try:
            return gzip.decompress(body)
        except (OSError, EOFError, zlib.error) as e:
            raise UpstreamError(f"upstream sent a corrupt gzip body: {e}") from e
