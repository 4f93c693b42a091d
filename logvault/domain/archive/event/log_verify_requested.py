"""LogVerifyRequested event - asks for an archived object to be re-read and re-hashed."""

from logvault.domain.shared.event import Event, EventId
from logvault.domain.shared.model.value import JobId


class LogVerifyRequested(Event):
    id: EventId
    job_id: JobId
