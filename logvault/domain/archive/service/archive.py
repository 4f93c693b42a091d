"""ArchiveService - pull, verify and expire archived log windows."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import logfire

from logvault.domain.archive.chain import (
    GENESIS_HASH,
    ChainAudit,
    ChainLink,
    link_hash,
    verify_chain,
    verify_digest,
)
from logvault.domain.archive.event import LogVerifyRequested, LogWindowArchived
from logvault.domain.archive.model.job import ArchivedObject, ArchiveJob
from logvault.domain.archive.model.value import JobStatus, TimeWindow
from logvault.domain.archive.port import (
    ArchivedObjectRepository,
    ArchiveJobRepository,
    ArchiveStorage,
    LogSource,
    SourceRepository,
)
from logvault.domain.shared.error import (
    DigestMismatchError,
    InvalidStateError,
    JobNotFoundError,
    SourceNotFoundError,
    ValidationError,
)
from logvault.domain.shared.event import EventId
from logvault.domain.shared.model.value import JobId, SourceId, TenantId
from logvault.domain.shared.outbox import Outbox
from logvault.domain.shared.service import Service

logger = logging.getLogger(__name__)


@dataclass
class ExpiryResult:
    """Outcome of one tenant's expiry run."""

    tenant_id: TenantId
    expired: list[JobId] = field(default_factory=list)
    failed: dict[JobId, str] = field(default_factory=dict)


class ArchiveService(Service):
    """Drives archive jobs through their lifecycle.

    Every public method works on exactly one job or one tenant named by its
    arguments and keeps no state between calls, so any number of them may
    run concurrently. Failures are never retried here: they are recorded on
    the job where there is one and re-raised for the task layer to retry.
    """

    sources: SourceRepository
    jobs: ArchiveJobRepository
    objects: ArchivedObjectRepository
    log_source: LogSource
    storage: ArchiveStorage
    outbox: Outbox

    async def pull_window(
        self, source_id: SourceId, tenant_id: TenantId, window: TimeWindow
    ) -> ArchiveJob:
        """Fetch, store and chain one window of logs.

        Returns the done job. If the window was already archived for this
        source the existing job is returned and nothing is fetched.

        Raises:
            SourceNotFoundError: the source does not exist.
            ValidationError: the source belongs to another tenant.
            LogVaultError: fetch or upload failed; the job is saved as failed first.
        """
        source = await self.sources.get(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source not found: {source_id}")
        if source.tenant_id != tenant_id:
            raise ValidationError(
                f"Source {source_id} belongs to tenant {source.tenant_id}, not {tenant_id}"
            )

        existing = await self.jobs.find_archived_window(source_id, window)
        if existing is not None:
            logger.info(
                "Window %s of source %s already archived by job %s, skipping",
                window,
                source_id,
                existing.id,
            )
            return existing

        job = ArchiveJob.create(source_id=source_id, tenant_id=tenant_id, window=window)
        job.start()
        await self.jobs.save(job)

        try:
            raw = await self.log_source.fetch(source.zone_id, window.start, window.end)
            receipt = await self.storage.put(tenant_id, source_id, window, raw)
        except Exception as e:
            job.fail(str(e) or type(e).__name__)
            await self.jobs.save(job)
            logger.error("Job %s for source %s failed: %s", job.id, source_id, e)
            raise

        # Held until the unit of work commits, so concurrent pulls of one
        # source link up one at a time.
        await self.sources.lock(source_id)
        previous = await self.jobs.find_latest_chained(source_id)
        if previous is None or previous.chain_hash is None:
            prev_hash, seq = GENESIS_HASH, 1
        else:
            prev_hash, seq = previous.chain_hash, (previous.chain_seq or 0) + 1
        job.complete(
            receipt,
            chain_hash=link_hash(prev_hash, receipt.digest, job.id),
            chain_seq=seq,
        )
        await self.jobs.save(job)
        await self.objects.save(ArchivedObject.for_job(job))

        logger.info(
            "Archived %s lines (%s bytes) of source %s to %s:%s",
            job.line_count,
            job.byte_count,
            source_id,
            job.provider,
            job.object_key,
        )

        await self.outbox.append(
            LogWindowArchived(
                id=EventId(uuid4()),
                job_id=job.id,
                source_id=source_id,
                tenant_id=tenant_id,
                period_end=window.end,
                archived_at=job.updated_at,
            )
        )

        # Verification is advisory; the pull already succeeded.
        try:
            await self.outbox.append(LogVerifyRequested(id=EventId(uuid4()), job_id=job.id))
        except Exception:
            logger.exception("Failed to enqueue verification of job %s", job.id)

        return job

    async def verify_job(self, job_id: JobId, now: datetime | None = None) -> ArchiveJob:
        """Re-read a done job's object and check it still hashes to its digest.

        A mismatch is alerted and raised; the job keeps its done status.
        Jobs expired in the meantime have nothing left to verify and are skipped.
        """
        job = await self.jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Archive job not found: {job_id}")
        if job.status == JobStatus.EXPIRED:
            logger.info("Job %s expired before verification, skipping", job_id)
            return job
        if job.status != JobStatus.DONE or not job.object_key or not job.provider:
            raise InvalidStateError(f"Job {job_id} is {job.status}, only done jobs are verified")

        data = await self.storage.get_compressed(job.provider, job.object_key)
        try:
            verify_digest(data, job.digest or "", key=job.object_key)
        except DigestMismatchError as e:
            logger.error("Integrity violation on job %s: %s", job_id, e)
            logfire.error(
                "Archived object failed verification",
                job_id=str(job_id),
                key=job.object_key,
                provider=job.provider,
                expected=e.expected,
                actual=e.actual,
            )
            raise

        job.mark_verified(now or datetime.now(UTC))
        await self.jobs.save(job)
        logger.debug("Verified job %s (%s)", job_id, job.object_key)
        return job

    async def expire_for_tenant(
        self, tenant_id: TenantId, retention_days: int, now: datetime | None = None
    ) -> ExpiryResult:
        """Erase every done job of the tenant whose window ended before the retention cutoff.

        Each job is handled on its own: a failed delete or save is logged
        and left for the next sweep while the rest of the batch continues.
        """
        cutoff = (now or datetime.now(UTC)) - timedelta(days=retention_days)
        result = ExpiryResult(tenant_id=tenant_id)

        for job in await self.jobs.list_expired(tenant_id, cutoff):
            try:
                if job.object_key and job.provider:
                    await self.storage.delete(job.provider, job.object_key)
                job.expire()
                await self.jobs.save(job)
            except Exception as e:
                logger.error("Failed to expire job %s of tenant %s: %s", job.id, tenant_id, e)
                result.failed[job.id] = str(e)
                continue
            result.expired.append(job.id)

        if result.expired or result.failed:
            logger.info(
                "Expiry for tenant %s (cutoff %s): %d expired, %d failed",
                tenant_id,
                cutoff.isoformat(),
                len(result.expired),
                len(result.failed),
            )
        return result

    async def audit_chain(self, source_id: SourceId) -> ChainAudit:
        """Recompute a source's chain from stored digests and ids."""
        links = [
            ChainLink(job_id=j.id, digest=j.digest or "", chain_hash=j.chain_hash or "")
            for j in await self.jobs.list_chain(source_id)
        ]
        audit = verify_chain(links)
        if not audit.ok and audit.broken_at is not None:
            logger.error(
                "Chain of source %s broken at job %s after %d good links",
                source_id,
                audit.broken_at.job_id,
                audit.checked,
            )
        return audit
