"""ExpireArchives - handles LogExpireRequested events."""

import logfire

from logvault.domain.archive.event import LogExpireRequested
from logvault.domain.archive.service import ArchiveService
from logvault.domain.shared.event import EventHandler, Queue


class ExpireArchives(EventHandler[LogExpireRequested]):
    """Erases a tenant's archives older than its retention period.

    Per-job failures are isolated inside the service and do not fail the
    delivery; they are picked up again by the next sweep.
    """

    __queue__ = Queue.LOW

    service: ArchiveService

    async def handle(self, event: LogExpireRequested) -> None:
        with logfire.span(
            "ExpireArchives",
            tenant_id=str(event.tenant_id),
            retention_days=event.retention_days,
        ):
            result = await self.service.expire_for_tenant(event.tenant_id, event.retention_days)
            if result.failed:
                logfire.warning(
                    "Some archives could not be expired",
                    tenant_id=str(event.tenant_id),
                    failed=len(result.failed),
                )
