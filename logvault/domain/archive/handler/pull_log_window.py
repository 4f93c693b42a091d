"""PullLogWindow - handles LogPullRequested events."""

import logfire

from logvault.domain.archive.event import LogPullRequested
from logvault.domain.archive.service import ArchiveService
from logvault.domain.shared.event import EventHandler, Queue


class PullLogWindow(EventHandler[LogPullRequested]):
    """Fetches one window from the upstream and archives it.

    A failure leaves a failed job behind and propagates, so the delivery is
    retried with backoff by the worker.
    """

    __queue__ = Queue.DEFAULT
    __max_retries__ = 5

    service: ArchiveService

    async def handle(self, event: LogPullRequested) -> None:
        with logfire.span(
            "PullLogWindow",
            source_id=str(event.source_id),
            period_start=event.period_start.isoformat(),
            period_end=event.period_end.isoformat(),
        ):
            await self.service.pull_window(
                source_id=event.source_id,
                tenant_id=event.tenant_id,
                window=event.window,
            )
