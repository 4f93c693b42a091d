"""VerifyArchivedObject - handles LogVerifyRequested events."""

import logfire

from logvault.domain.archive.event import LogVerifyRequested
from logvault.domain.archive.service import ArchiveService
from logvault.domain.shared.event import EventHandler, Queue


class VerifyArchivedObject(EventHandler[LogVerifyRequested]):
    __queue__ = Queue.LOW

    service: ArchiveService

    async def handle(self, event: LogVerifyRequested) -> None:
        with logfire.span("VerifyArchivedObject", job_id=str(event.job_id)):
            await self.service.verify_job(event.job_id)
