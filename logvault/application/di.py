from dishka import AsyncContainer, from_context, make_async_container

from logvault.config import Config
from logvault.infrastructure.event.di import EventProvider
from logvault.infrastructure.persistence import PersistenceProvider
from logvault.infrastructure.storage.di import StorageProvider
from logvault.infrastructure.upstream.di import UpstreamProvider
from logvault.util.di.base import Provider
from logvault.util.di.scope import Scope


class ConfigProvider(Provider):
    config = from_context(provides=Config, scope=Scope.APP)


def create_container(config: Config | None = None) -> AsyncContainer:
    # Pydantic Settings populates from env vars and the YAML file at runtime
    if config is None:
        config = Config()  # type: ignore[call-arg]

    return make_async_container(
        ConfigProvider(),
        PersistenceProvider(),
        UpstreamProvider(),
        StorageProvider(),
        EventProvider(),
        context={Config: config},
        scopes=Scope,  # type: ignore[arg-type]  # Custom scope class
    )
