from datetime import UTC, datetime
from uuid import uuid4

from pydantic import Field

from logvault.domain.archive.model.value import ArchiveReceipt, JobStatus, TimeWindow
from logvault.domain.shared.error import InvalidStateError, ValidationError
from logvault.domain.shared.model.entity import Aggregate, Entity
from logvault.domain.shared.model.value import JobId, SourceId, TenantId


class ArchiveJob(Aggregate):
    """One attempt at archiving one window of one source.

    Status moves `pending -> running -> {done, failed}` and `done -> expired`.
    Rows are never deleted: expiry removes the stored object but keeps the
    metadata and chain hash as an audit entry.
    """

    id: JobId
    source_id: SourceId
    tenant_id: TenantId
    window: TimeWindow
    status: JobStatus = JobStatus.PENDING
    object_key: str | None = None
    provider: str | None = None
    digest: str | None = None
    chain_hash: str | None = None
    chain_seq: int | None = None
    byte_count: int = 0
    line_count: int = 0
    error: str | None = None
    verified_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(cls, source_id: SourceId, tenant_id: TenantId, window: TimeWindow) -> "ArchiveJob":
        return cls(id=JobId(uuid4()), source_id=source_id, tenant_id=tenant_id, window=window)

    @property
    def is_chained(self) -> bool:
        return self.status in (JobStatus.DONE, JobStatus.EXPIRED)

    def _require(self, *allowed: JobStatus) -> None:
        if self.status not in allowed:
            raise InvalidStateError(
                f"Job {self.id} is {self.status}, expected one of "
                f"{', '.join(s.value for s in allowed)}"
            )

    def _touch(self) -> None:
        self.updated_at = datetime.now(UTC)

    def start(self) -> None:
        self._require(JobStatus.PENDING)
        self.status = JobStatus.RUNNING
        self._touch()

    def complete(self, receipt: ArchiveReceipt, chain_hash: str, chain_seq: int) -> None:
        """Mark the job done as link number `chain_seq` of its source's chain.

        Links are numbered in completion order, which is also the order the
        chain hashes were computed in.
        """
        self._require(JobStatus.RUNNING)
        if not receipt.key or not receipt.digest or not chain_hash:
            raise ValidationError("done jobs need an object key, digest and chain hash")
        if chain_seq < 1:
            raise ValidationError(f"chain sequence starts at 1, got {chain_seq}")
        self.object_key = receipt.key
        self.provider = receipt.provider
        self.digest = receipt.digest
        self.byte_count = receipt.byte_count
        self.line_count = receipt.line_count
        self.chain_hash = chain_hash
        self.chain_seq = chain_seq
        self.error = None
        self.status = JobStatus.DONE
        self._touch()

    def fail(self, error: str) -> None:
        self._require(JobStatus.PENDING, JobStatus.RUNNING)
        self.error = error or "unknown error"
        self.object_key = None
        self.provider = None
        self.status = JobStatus.FAILED
        self._touch()

    def expire(self) -> None:
        self._require(JobStatus.DONE)
        self.status = JobStatus.EXPIRED
        self._touch()

    def mark_verified(self, at: datetime) -> None:
        self._require(JobStatus.DONE)
        self.verified_at = at
        self._touch()


class ArchivedObject(Entity):
    """Immutable record of the artifact behind a done job."""

    job_id: JobId
    object_key: str
    provider: str
    digest: str
    byte_count: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def for_job(cls, job: ArchiveJob) -> "ArchivedObject":
        if job.status != JobStatus.DONE or job.object_key is None:
            raise InvalidStateError(f"Job {job.id} has no archived object")
        return cls(
            job_id=job.id,
            object_key=job.object_key,
            provider=job.provider or "",
            digest=job.digest or "",
            byte_count=job.byte_count,
        )
