"""LogWindowArchived event - a pull job reached done."""

from datetime import datetime

from logvault.domain.shared.event import Event, EventId
from logvault.domain.shared.model.value import JobId, SourceId, TenantId


class LogWindowArchived(Event):
    """Emitted once per done job.

    Consumers use it for bookkeeping (the source's last-pulled timestamp)
    so the scheduler never has to infer pull success itself.
    """

    id: EventId
    job_id: JobId
    source_id: SourceId
    tenant_id: TenantId
    period_end: datetime
    archived_at: datetime
