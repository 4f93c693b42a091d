from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import List, Protocol

from logvault.domain.archive.model.job import ArchivedObject, ArchiveJob
from logvault.domain.archive.model.source import Source, Tenant
from logvault.domain.archive.model.value import TimeWindow
from logvault.domain.shared.model.value import JobId, SourceId, TenantId
from logvault.domain.shared.port import Port


class TenantRepository(Port, Protocol):
    @abstractmethod
    async def get(self, tenant_id: TenantId) -> Tenant | None: ...

    @abstractmethod
    async def list(self) -> List[Tenant]: ...


class SourceRepository(Port, Protocol):
    @abstractmethod
    async def get(self, source_id: SourceId) -> Source | None: ...

    @abstractmethod
    async def list_active(self) -> List[Source]: ...

    @abstractmethod
    async def list_due(self, now: datetime) -> List[Source]:
        """Active sources never pulled, or last pulled at least one interval ago."""
        ...

    @abstractmethod
    async def mark_pulled(self, source_id: SourceId, at: datetime) -> None: ...

    @abstractmethod
    async def lock(self, source_id: SourceId) -> None:
        """Hold the source until the current unit of work ends."""
        ...


class ArchiveJobRepository(Port, Protocol):
    @abstractmethod
    async def get(self, job_id: JobId) -> ArchiveJob | None: ...

    @abstractmethod
    async def save(self, job: ArchiveJob) -> None: ...

    @abstractmethod
    async def find_latest_chained(self, source_id: SourceId) -> ArchiveJob | None:
        """Done or expired job with the highest chain sequence."""
        ...

    @abstractmethod
    async def find_archived_window(
        self, source_id: SourceId, window: TimeWindow
    ) -> ArchiveJob | None:
        """A done or expired job covering exactly this window, if any."""
        ...

    @abstractmethod
    async def list_expired(self, tenant_id: TenantId, cutoff: datetime) -> List[ArchiveJob]:
        """Done jobs of the tenant whose window ended before `cutoff`."""
        ...

    @abstractmethod
    async def list_chain(self, source_id: SourceId) -> List[ArchiveJob]:
        """Done and expired jobs of the source in chain-sequence order."""
        ...


class ArchivedObjectRepository(Port, Protocol):
    @abstractmethod
    async def save(self, obj: ArchivedObject) -> None: ...

    @abstractmethod
    async def get_by_job(self, job_id: JobId) -> ArchivedObject | None: ...
