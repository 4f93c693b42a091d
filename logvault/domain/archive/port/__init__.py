from logvault.domain.archive.port.archive_storage import ArchiveStorage, ArchiveStore
from logvault.domain.archive.port.log_source import LogSource
from logvault.domain.archive.port.repository import (
    ArchivedObjectRepository,
    ArchiveJobRepository,
    SourceRepository,
    TenantRepository,
)

__all__ = [
    "ArchiveJobRepository",
    "ArchiveStorage",
    "ArchiveStore",
    "ArchivedObjectRepository",
    "LogSource",
    "SourceRepository",
    "TenantRepository",
]
