from datetime import datetime, timedelta

from pydantic import Field

from logvault.domain.shared.model.entity import Entity
from logvault.domain.shared.model.value import SourceId, TenantId


class Tenant(Entity):
    id: TenantId
    name: str
    retention_days: int = Field(gt=0)
    created_at: datetime


class Source(Entity):
    """A monitored log-producing unit, e.g. one customer zone.

    `zone_id` is the opaque identifier the upstream log-pull API knows it by.
    Activation and interval are managed outside the archiver; the archiver only
    reads them and moves `last_pulled_at` to the end of each archived window,
    which is where the next pull starts.
    """

    id: SourceId
    tenant_id: TenantId
    zone_id: str
    name: str = ""
    pull_interval: int = Field(default=3600, gt=0)  # seconds
    last_pulled_at: datetime | None = None
    active: bool = True
    created_at: datetime

    def is_due(self, now: datetime) -> bool:
        if not self.active:
            return False
        if self.last_pulled_at is None:
            return True
        return now - self.last_pulled_at >= timedelta(seconds=self.pull_interval)

    def mark_pulled(self, at: datetime) -> None:
        if self.last_pulled_at is None or at > self.last_pulled_at:
            self.last_pulled_at = at
