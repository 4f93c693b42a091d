"""LogPullRequested event - asks for one window of one source to be archived."""

from datetime import datetime

from logvault.domain.archive.model.value import TimeWindow
from logvault.domain.shared.event import Event, EventId
from logvault.domain.shared.model.value import SourceId, TenantId


class LogPullRequested(Event):
    """Emitted by the zone scheduler (or an operator) for a due source."""

    id: EventId
    source_id: SourceId
    tenant_id: TenantId
    period_start: datetime
    period_end: datetime

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(start=self.period_start, end=self.period_end)
