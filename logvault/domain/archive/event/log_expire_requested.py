"""LogExpireRequested event - asks for a tenant's out-of-retention archives to be erased."""

from pydantic import Field

from logvault.domain.shared.event import Event, EventId
from logvault.domain.shared.model.value import TenantId


class LogExpireRequested(Event):
    id: EventId
    tenant_id: TenantId
    retention_days: int = Field(gt=0)
