from logvault.domain.archive.model.job import ArchivedObject, ArchiveJob
from logvault.domain.archive.model.source import Source, Tenant
from logvault.domain.archive.model.value import (
    ArchiveReceipt,
    JobStatus,
    StoredObject,
    TimeWindow,
)

__all__ = [
    "ArchiveJob",
    "ArchiveReceipt",
    "ArchivedObject",
    "JobStatus",
    "Source",
    "StoredObject",
    "Tenant",
    "TimeWindow",
]
