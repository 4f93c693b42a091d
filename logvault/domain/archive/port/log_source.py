from abc import abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from logvault.domain.shared.port import Port


class LogSource(Port, Protocol):
    """Upstream log-pull API."""

    @abstractmethod
    async def fetch(
        self,
        zone_id: str,
        start: datetime,
        end: datetime,
        fields: Sequence[str] | None = None,
    ) -> bytes:
        """Return the raw NDJSON lines logged in `[start, end)`, decompressed.

        Raises:
            WindowTooLargeError: `end - start` exceeds the upstream maximum.
            NotYetAvailableError: `end` is closer to now than the availability delay.
            WindowExpiredError: `start` is older than the upstream keeps logs.
            UpstreamError: the API answered non-2xx or could not be reached.
        """
        ...
