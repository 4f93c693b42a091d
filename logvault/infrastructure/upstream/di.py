"""DI provider for the upstream log-pull client."""

from typing import AsyncIterable, NewType

import httpx
from dishka import provide

from logvault.config import Config
from logvault.domain.archive.port.log_source import LogSource
from logvault.infrastructure.upstream.client import LogpullClient
from logvault.util.di.base import Provider
from logvault.util.di.scope import Scope

# Disambiguate from any other httpx.AsyncClient in the container
UpstreamHttpClient = NewType("UpstreamHttpClient", httpx.AsyncClient)


class UpstreamProvider(Provider):
    @provide(scope=Scope.APP)
    async def get_upstream_http_client(self, config: Config) -> AsyncIterable[UpstreamHttpClient]:
        """Shared connection pool for log pulls, closed with the container."""
        timeout = httpx.Timeout(config.upstream.request_timeout, connect=5.0)
        async with httpx.AsyncClient(timeout=timeout) as client:
            yield UpstreamHttpClient(client)

    @provide(scope=Scope.APP, provides=LogSource)
    def get_log_source(self, client: UpstreamHttpClient, config: Config) -> LogpullClient:
        return LogpullClient(client=client, config=config.upstream)
