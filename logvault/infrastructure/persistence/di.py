from typing import AsyncIterable

from dishka import provide
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from logvault.config import Config
from logvault.domain.archive.port.repository import (
    ArchivedObjectRepository,
    ArchiveJobRepository,
    SourceRepository,
    TenantRepository,
)
from logvault.domain.shared.port.event_repository import EventRepository
from logvault.infrastructure.persistence.database import (
    create_db_engine,
    create_session_factory,
)
from logvault.infrastructure.persistence.repository.archive_job import (
    SQLAlchemyArchivedObjectRepository,
    SQLAlchemyArchiveJobRepository,
)
from logvault.infrastructure.persistence.repository.event import (
    SQLAlchemyEventRepository,
)
from logvault.infrastructure.persistence.repository.source import (
    SQLAlchemySourceRepository,
    SQLAlchemyTenantRepository,
)
from logvault.util.di.base import Provider
from logvault.util.di.scope import Scope


class PersistenceProvider(Provider):
    # APP-scoped factories
    @provide(scope=Scope.APP)
    async def get_engine(self, config: Config) -> AsyncIterable[AsyncEngine]:
        engine = create_db_engine(config.database)
        yield engine
        await engine.dispose()

    @provide(scope=Scope.APP)
    def get_session_factory(self, engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return create_session_factory(engine)

    # UOW-scoped session (one per unit of work)
    @provide(scope=Scope.UOW)
    async def get_session(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> AsyncIterable[AsyncSession]:
        async with session_factory() as session:
            yield session
            await session.commit()

    # UOW-scoped repositories
    event_repo = provide(SQLAlchemyEventRepository, scope=Scope.UOW, provides=EventRepository)
    tenant_repo = provide(SQLAlchemyTenantRepository, scope=Scope.UOW, provides=TenantRepository)
    source_repo = provide(SQLAlchemySourceRepository, scope=Scope.UOW, provides=SourceRepository)
    job_repo = provide(
        SQLAlchemyArchiveJobRepository, scope=Scope.UOW, provides=ArchiveJobRepository
    )
    object_repo = provide(
        SQLAlchemyArchivedObjectRepository, scope=Scope.UOW, provides=ArchivedObjectRepository
    )
