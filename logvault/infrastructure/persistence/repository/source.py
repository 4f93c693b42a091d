from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from logvault.domain.archive.model.source import Source, Tenant
from logvault.domain.archive.port.repository import SourceRepository, TenantRepository
from logvault.domain.shared.model.value import SourceId, TenantId
from logvault.infrastructure.persistence.mappers.archive import (
    row_to_source,
    row_to_tenant,
    source_to_dict,
    tenant_to_dict,
    to_utc,
)
from logvault.infrastructure.persistence.tables import sources_table, tenants_table


class SQLAlchemyTenantRepository(TenantRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, tenant_id: TenantId) -> Tenant | None:
        stmt = select(tenants_table).where(tenants_table.c.id == str(tenant_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_tenant(dict(row)) if row else None

    async def list(self) -> List[Tenant]:
        stmt = select(tenants_table).order_by(tenants_table.c.created_at.asc())
        result = await self.session.execute(stmt)
        return [row_to_tenant(dict(r)) for r in result.mappings().all()]

    async def save(self, tenant: Tenant) -> None:
        values = tenant_to_dict(tenant)
        exists = await self.session.execute(
            select(tenants_table.c.id).where(tenants_table.c.id == values["id"])
        )
        if exists.first():
            stmt = update(tenants_table).where(tenants_table.c.id == values["id"]).values(**values)
        else:
            stmt = insert(tenants_table).values(**values)
        await self.session.execute(stmt)
        await self.session.flush()


class SQLAlchemySourceRepository(SourceRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, source_id: SourceId) -> Source | None:
        stmt = select(sources_table).where(sources_table.c.id == str(source_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_source(dict(row)) if row else None

    async def list_active(self) -> List[Source]:
        stmt = (
            select(sources_table)
            .where(sources_table.c.active.is_(True))
            .order_by(sources_table.c.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return [row_to_source(dict(r)) for r in result.mappings().all()]

    async def list_due(self, now: datetime) -> List[Source]:
        # Intervals differ per source; the per-row comparison stays in Python
        # so it behaves the same on every dialect.
        now = to_utc(now)
        active = await self.list_active()
        return [s for s in active if s.is_due(now)]

    async def mark_pulled(self, source_id: SourceId, at: datetime) -> None:
        at = to_utc(at)
        last = sources_table.c.last_pulled_at
        stmt = (
            update(sources_table)
            .where(sources_table.c.id == str(source_id))
            .where(last.is_(None) | (last < at))
            .values(last_pulled_at=at)
        )
        await self.session.execute(stmt)

    async def lock(self, source_id: SourceId) -> None:
        # SQLite ignores FOR UPDATE; its database-wide write lock applies instead
        stmt = (
            select(sources_table.c.id)
            .where(sources_table.c.id == str(source_id))
            .with_for_update()
        )
        await self.session.execute(stmt)

    async def save(self, source: Source) -> None:
        values = source_to_dict(source)
        exists = await self.session.execute(
            select(sources_table.c.id).where(sources_table.c.id == values["id"])
        )
        if exists.first():
            stmt = update(sources_table).where(sources_table.c.id == values["id"]).values(**values)
        else:
            stmt = insert(sources_table).values(**values)
        await self.session.execute(stmt)
        await self.session.flush()
