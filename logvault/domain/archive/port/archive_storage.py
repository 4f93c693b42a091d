from abc import abstractmethod
from typing import Protocol

from logvault.domain.archive.model.value import ArchiveReceipt, StoredObject, TimeWindow
from logvault.domain.shared.model.value import SourceId, TenantId
from logvault.domain.shared.port import Port


class ArchiveStore(Port, Protocol):
    """One write-once object store."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider label recorded on jobs archived through this store."""
        ...

    @abstractmethod
    async def put(
        self, tenant_id: TenantId, source_id: SourceId, window: TimeWindow, raw: bytes
    ) -> StoredObject: ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Download and decompress."""
        ...

    @abstractmethod
    async def get_compressed(self, key: str) -> bytes:
        """Download the stored bytes exactly as archived."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...


class ArchiveStorage(Port, Protocol):
    """Ordered failover over one or more archive stores.

    Reads and deletes are addressed to the provider recorded on the job.
    """

    @abstractmethod
    async def put(
        self, tenant_id: TenantId, source_id: SourceId, window: TimeWindow, raw: bytes
    ) -> ArchiveReceipt: ...

    @abstractmethod
    async def get(self, provider: str, key: str) -> bytes: ...

    @abstractmethod
    async def get_compressed(self, provider: str, key: str) -> bytes: ...

    @abstractmethod
    async def delete(self, provider: str, key: str) -> None: ...
