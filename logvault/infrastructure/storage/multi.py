"""Ordered failover over several archive stores."""

import logging
from collections.abc import Sequence

from logvault.domain.archive.model.value import ArchiveReceipt, TimeWindow
from logvault.domain.archive.port.archive_storage import ArchiveStorage, ArchiveStore
from logvault.domain.shared.error import (
    AllProvidersFailedError,
    ConfigurationError,
    StorageError,
)
from logvault.domain.shared.model.value import SourceId, TenantId


class MultiProviderStore(ArchiveStorage):
    """Uploads to the first store that accepts the object.

    Stores are tried strictly in order. A failed store is not retried and its
    error is only kept if it was the last one. Every store derives the same
    key for the same content, so whichever one wins, the job's key is stable.
    Reads and deletes go straight to the store named on the job.
    """

    def __init__(
        self,
        stores: Sequence[ArchiveStore],
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        if not stores:
            raise ConfigurationError("at least one storage provider must be configured")
        names = [s.name for s in stores]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"storage provider names must be unique, got {names}")
        self._stores = list(stores)
        self._by_name = {s.name: s for s in stores}
        self._log = logger or logging.getLogger(__name__)

    @property
    def providers(self) -> list[str]:
        return [s.name for s in self._stores]

    def _store(self, provider: str) -> ArchiveStore:
        store = self._by_name.get(provider)
        if store is None:
            raise StorageError(f"unknown storage provider {provider!r}", provider=provider)
        return store

    async def put(
        self, tenant_id: TenantId, source_id: SourceId, window: TimeWindow, raw: bytes
    ) -> ArchiveReceipt:
        attempts: list[str] = []
        errors: list[Exception] = []
        for store in self._stores:
            attempts.append(store.name)
            try:
                stored = await store.put(tenant_id, source_id, window, raw)
            except Exception as e:
                self._log.warning("Storage provider %s failed: %s", store.name, e)
                errors.append(e)
                continue
            if len(attempts) > 1:
                self._log.info("Stored %s on fallback provider %s", stored.key, store.name)
            return ArchiveReceipt(provider=store.name, **stored.model_dump())

        # the constructor guarantees at least one store, so errors is never empty here
        raise AllProvidersFailedError(attempts, errors[-1]) from errors[-1]

    async def get(self, provider: str, key: str) -> bytes:
        return await self._store(provider).get(key)

    async def get_compressed(self, provider: str, key: str) -> bytes:
        return await self._store(provider).get_compressed(key)

    async def delete(self, provider: str, key: str) -> None:
        await self._store(provider).delete(key)
