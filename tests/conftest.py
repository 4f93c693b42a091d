"""Global test fixtures."""

import os
from datetime import UTC, datetime
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from logvault.domain.archive.model import Source, Tenant, TimeWindow
from logvault.domain.shared.model.value import SourceId, TenantId
from logvault.infrastructure.persistence.database import create_session_factory
from logvault.infrastructure.persistence.tables import metadata


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep the developer's LOGVAULT_* environment out of tests."""
    for key in list(os.environ):
        if key.startswith("LOGVAULT_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def tenant() -> Tenant:
    return Tenant(
        id=TenantId(uuid4()),
        name="acme",
        retention_days=30,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def source(tenant: Tenant) -> Source:
    return Source(
        id=SourceId(uuid4()),
        tenant_id=tenant.id,
        zone_id="023e105f4ecef8ad9ca31a8372d0c353",
        name="www.acme.test",
        pull_interval=3600,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


@pytest.fixture
def window() -> TimeWindow:
    return TimeWindow(
        start=datetime(2024, 1, 1, 9, 0, tzinfo=UTC),
        end=datetime(2024, 1, 1, 10, 0, tzinfo=UTC),
    )


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory SQLite database with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session
        await session.rollback()
