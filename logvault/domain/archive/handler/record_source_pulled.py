"""RecordSourcePulled - handles LogWindowArchived events."""

from logvault.domain.archive.event import LogWindowArchived
from logvault.domain.archive.port import SourceRepository
from logvault.domain.shared.event import EventHandler, Queue


class RecordSourcePulled(EventHandler[LogWindowArchived]):
    """Moves the source's last-pulled mark to the end of the archived window.

    The next pull of the source starts there, so windows tile.
    """

    __queue__ = Queue.CRITICAL

    sources: SourceRepository

    async def handle(self, event: LogWindowArchived) -> None:
        await self.sources.mark_pulled(event.source_id, event.period_end)
