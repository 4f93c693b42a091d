from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from logvault.domain.archive.model.job import ArchivedObject, ArchiveJob
from logvault.domain.archive.model.source import Source, Tenant
from logvault.domain.archive.model.value import JobStatus, TimeWindow
from logvault.domain.shared.model.value import JobId, SourceId, TenantId


def to_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we write is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _opt_utc(value: datetime | None) -> datetime | None:
    return to_utc(value) if value is not None else None


def row_to_tenant(row: dict[str, Any]) -> Tenant:
    return Tenant(
        id=TenantId(UUID(row["id"])),
        name=row["name"],
        retention_days=row["retention_days"],
        created_at=to_utc(row["created_at"]),
    )


def tenant_to_dict(tenant: Tenant) -> dict[str, Any]:
    return {
        "id": str(tenant.id),
        "name": tenant.name,
        "retention_days": tenant.retention_days,
        "created_at": to_utc(tenant.created_at),
    }


def row_to_source(row: dict[str, Any]) -> Source:
    return Source(
        id=SourceId(UUID(row["id"])),
        tenant_id=TenantId(UUID(row["tenant_id"])),
        zone_id=row["zone_id"],
        name=row.get("name") or "",
        pull_interval=row["pull_interval"],
        last_pulled_at=_opt_utc(row.get("last_pulled_at")),
        active=bool(row["active"]),
        created_at=to_utc(row["created_at"]),
    )


def source_to_dict(source: Source) -> dict[str, Any]:
    return {
        "id": str(source.id),
        "tenant_id": str(source.tenant_id),
        "zone_id": source.zone_id,
        "name": source.name,
        "pull_interval": source.pull_interval,
        "last_pulled_at": _opt_utc(source.last_pulled_at),
        "active": source.active,
        "created_at": to_utc(source.created_at),
    }


def row_to_job(row: dict[str, Any]) -> ArchiveJob:
    return ArchiveJob(
        id=JobId(UUID(row["id"])),
        source_id=SourceId(UUID(row["source_id"])),
        tenant_id=TenantId(UUID(row["tenant_id"])),
        window=TimeWindow(start=to_utc(row["period_start"]), end=to_utc(row["period_end"])),
        status=JobStatus(row["status"]),
        object_key=row.get("object_key"),
        provider=row.get("provider"),
        digest=row.get("digest"),
        chain_hash=row.get("chain_hash"),
        chain_seq=row.get("chain_seq"),
        byte_count=row.get("byte_count") or 0,
        line_count=row.get("line_count") or 0,
        error=row.get("error"),
        verified_at=_opt_utc(row.get("verified_at")),
        created_at=to_utc(row["created_at"]),
        updated_at=to_utc(row["updated_at"]),
    )


def job_to_dict(job: ArchiveJob) -> dict[str, Any]:
    return {
        "id": str(job.id),
        "source_id": str(job.source_id),
        "tenant_id": str(job.tenant_id),
        "period_start": to_utc(job.window.start),
        "period_end": to_utc(job.window.end),
        "status": job.status.value,
        "object_key": job.object_key,
        "provider": job.provider,
        "digest": job.digest,
        "chain_hash": job.chain_hash,
        "chain_seq": job.chain_seq,
        "byte_count": job.byte_count,
        "line_count": job.line_count,
        "error": job.error,
        "verified_at": _opt_utc(job.verified_at),
        "created_at": to_utc(job.created_at),
        "updated_at": to_utc(job.updated_at),
    }


def row_to_archived_object(row: dict[str, Any]) -> ArchivedObject:
    return ArchivedObject(
        job_id=JobId(UUID(row["job_id"])),
        object_key=row["object_key"],
        provider=row["provider"],
        digest=row["digest"],
        byte_count=row["byte_count"],
        created_at=to_utc(row["created_at"]),
    )


def archived_object_to_dict(obj: ArchivedObject) -> dict[str, Any]:
    return {
        "job_id": str(obj.job_id),
        "object_key": obj.object_key,
        "provider": obj.provider,
        "digest": obj.digest,
        "byte_count": obj.byte_count,
        "created_at": to_utc(obj.created_at),
    }
