"""DI provider for archive storage."""

import logging

from dishka import provide

from logvault.config import Config, FilesystemProviderConfig, S3ProviderConfig
from logvault.domain.archive.port.archive_storage import ArchiveStorage, ArchiveStore
from logvault.domain.shared.error import ConfigurationError
from logvault.infrastructure.storage.filesystem import LocalArchiveStore
from logvault.infrastructure.storage.multi import MultiProviderStore
from logvault.infrastructure.storage.s3 import S3ArchiveStore
from logvault.util.di.base import Provider
from logvault.util.di.scope import Scope

logger = logging.getLogger(__name__)


def build_stores(config: Config) -> list[ArchiveStore]:
    stores: list[ArchiveStore] = []
    for provider in config.storage.providers:
        if isinstance(provider, S3ProviderConfig):
            stores.append(S3ArchiveStore.from_config(provider, config.storage.object_lock_days))
        elif isinstance(provider, FilesystemProviderConfig):
            stores.append(LocalArchiveStore(provider.root, name=provider.name))
        else:
            raise ConfigurationError(f"unsupported storage provider: {provider!r}")
    return stores


class StorageProvider(Provider):
    @provide(scope=Scope.APP)
    def get_archive_storage(self, config: Config) -> ArchiveStorage:
        stores = build_stores(config)
        storage = MultiProviderStore(stores)
        logger.info("Archive storage providers: %s", ", ".join(storage.providers))
        return storage
