from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from logvault.domain.archive.model.job import ArchivedObject, ArchiveJob
from logvault.domain.archive.model.value import JobStatus, TimeWindow
from logvault.domain.archive.port.repository import (
    ArchivedObjectRepository,
    ArchiveJobRepository,
)
from logvault.domain.shared.model.value import JobId, SourceId, TenantId
from logvault.infrastructure.persistence.mappers.archive import (
    archived_object_to_dict,
    job_to_dict,
    row_to_archived_object,
    row_to_job,
    to_utc,
)
from logvault.infrastructure.persistence.tables import archive_jobs_table, archived_objects_table

_CHAINED = (JobStatus.DONE.value, JobStatus.EXPIRED.value)


class SQLAlchemyArchiveJobRepository(ArchiveJobRepository):
    """Archive jobs. Rows are only ever inserted or updated in place."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, job_id: JobId) -> ArchiveJob | None:
        stmt = select(archive_jobs_table).where(archive_jobs_table.c.id == str(job_id))
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_job(dict(row)) if row else None

    async def save(self, job: ArchiveJob) -> None:
        values = job_to_dict(job)
        exists = await self.session.execute(
            select(archive_jobs_table.c.id).where(archive_jobs_table.c.id == values["id"])
        )
        if exists.first():
            stmt = (
                update(archive_jobs_table)
                .where(archive_jobs_table.c.id == values["id"])
                .values(**values)
            )
        else:
            stmt = insert(archive_jobs_table).values(**values)
        await self.session.execute(stmt)
        await self.session.flush()

    async def find_latest_chained(self, source_id: SourceId) -> ArchiveJob | None:
        stmt = (
            select(archive_jobs_table)
            .where(
                archive_jobs_table.c.source_id == str(source_id),
                archive_jobs_table.c.status.in_(_CHAINED),
                archive_jobs_table.c.chain_seq.is_not(None),
            )
            .order_by(archive_jobs_table.c.chain_seq.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_job(dict(row)) if row else None

    async def find_archived_window(
        self, source_id: SourceId, window: TimeWindow
    ) -> ArchiveJob | None:
        stmt = (
            select(archive_jobs_table)
            .where(
                archive_jobs_table.c.source_id == str(source_id),
                archive_jobs_table.c.period_start == to_utc(window.start),
                archive_jobs_table.c.period_end == to_utc(window.end),
                archive_jobs_table.c.status.in_(_CHAINED),
            )
            .order_by(archive_jobs_table.c.created_at.asc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_job(dict(row)) if row else None

    async def list_expired(self, tenant_id: TenantId, cutoff: datetime) -> List[ArchiveJob]:
        stmt = (
            select(archive_jobs_table)
            .where(
                archive_jobs_table.c.tenant_id == str(tenant_id),
                archive_jobs_table.c.status == JobStatus.DONE.value,
                archive_jobs_table.c.period_end < to_utc(cutoff),
            )
            .order_by(archive_jobs_table.c.period_end.asc())
        )
        result = await self.session.execute(stmt)
        return [row_to_job(dict(r)) for r in result.mappings().all()]

    async def list_chain(self, source_id: SourceId) -> List[ArchiveJob]:
        stmt = (
            select(archive_jobs_table)
            .where(
                archive_jobs_table.c.source_id == str(source_id),
                archive_jobs_table.c.status.in_(_CHAINED),
                archive_jobs_table.c.chain_seq.is_not(None),
            )
            .order_by(archive_jobs_table.c.chain_seq.asc())
        )
        result = await self.session.execute(stmt)
        return [row_to_job(dict(r)) for r in result.mappings().all()]


class SQLAlchemyArchivedObjectRepository(ArchivedObjectRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def save(self, obj: ArchivedObject) -> None:
        # Created once per done job and never changed afterwards.
        exists = await self.session.execute(
            select(archived_objects_table.c.job_id).where(
                archived_objects_table.c.job_id == str(obj.job_id)
            )
        )
        if exists.first():
            return
        await self.session.execute(
            insert(archived_objects_table).values(**archived_object_to_dict(obj))
        )
        await self.session.flush()

    async def get_by_job(self, job_id: JobId) -> ArchivedObject | None:
        stmt = select(archived_objects_table).where(
            archived_objects_table.c.job_id == str(job_id)
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return row_to_archived_object(dict(row)) if row else None
