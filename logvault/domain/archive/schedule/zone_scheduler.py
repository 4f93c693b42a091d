"""ZoneScheduler - scheduled task that dispatches pull and expiry tasks."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid5

from logvault.domain.archive.event import LogExpireRequested, LogPullRequested
from logvault.domain.archive.model.source import Source
from logvault.domain.archive.model.value import TimeWindow
from logvault.domain.archive.port import SourceRepository, TenantRepository
from logvault.domain.shared.event import EventId, Schedule
from logvault.domain.shared.outbox import Outbox

logger = logging.getLogger(__name__)

_TASK_NAMESPACE = UUID("6f1f6c2e-4b0e-5c1e-9a57-3d7f0c1b8e21")

# Slack kept between a backfill window and the upstream retention edge, so the
# task is still servable when a worker picks it up.
RETENTION_MARGIN = timedelta(minutes=10)


def _floor_minute(now: datetime) -> datetime:
    return now.astimezone(UTC).replace(second=0, microsecond=0)


def dispatch_slot(now: datetime, period: timedelta) -> int:
    """Index of the `period`-long slot containing `now`."""
    return int(_floor_minute(now).timestamp() // period.total_seconds())


def pull_event_id(source_id: UUID, start: datetime | None, slot: int) -> EventId:
    """Deterministic id for the pull that continues a source from `start`.

    The window end is left out: it grows while a pull is pending, and the
    same continuation must not be enqueued again on every tick. A new slot
    re-dispatches a pull that never got recorded.
    """
    anchor = start.astimezone(UTC).isoformat() if start else "initial"
    return EventId(uuid5(_TASK_NAMESPACE, f"pull:{source_id}:{anchor}:{slot}"))


def expire_event_id(tenant_id: UUID, tick: datetime) -> EventId:
    return EventId(uuid5(_TASK_NAMESPACE, f"expire:{tenant_id}:{tick.isoformat()}"))


def trailing_window(now: datetime, length: timedelta, delay: timedelta) -> TimeWindow:
    """Window of `length` ending `delay` before `now`, aligned to the minute."""
    return TimeWindow.ending_at(_floor_minute(now) - delay, length)


def next_window(
    source: Source,
    now: datetime,
    length: timedelta,
    delay: timedelta,
    upstream_retention: timedelta,
) -> TimeWindow | None:
    """Window a due source should pull next, or None when nothing is servable yet.

    A never-pulled source starts with the trailing window. Afterwards each
    window starts where the last archived one ended, so consecutive windows
    tile without gaps. Backlog older than the upstream keeps is skipped.
    """
    available = _floor_minute(now) - delay
    if source.last_pulled_at is None:
        return TimeWindow.ending_at(available, length)

    start = source.last_pulled_at.astimezone(UTC)
    oldest = _floor_minute(now) - upstream_retention + RETENTION_MARGIN
    if start < oldest:
        logger.warning(
            "Source %s is behind the upstream retention; logs from %s to %s are lost",
            source.id,
            start.isoformat(),
            oldest.isoformat(),
        )
        start = oldest
    end = min(start + length, available)
    if end <= start:
        return None
    return TimeWindow(start=start, end=end)


@dataclass
class ZoneScheduler(Schedule):
    """Each tick runs two independent sweeps.

    The due-sources sweep enqueues one pull per source whose interval has
    elapsed. The retention sweep enqueues one expiry per tenant. Neither
    waits for the tasks it dispatches, and neither writes `last_pulled_at`.
    """

    sources: SourceRepository
    tenants: TenantRepository
    outbox: Outbox
    window: timedelta = timedelta(hours=1)
    min_delay: timedelta = timedelta(minutes=1)
    upstream_retention: timedelta = timedelta(days=7)

    async def run(self, **params: Any) -> None:
        await self.tick(params.get("now"))

    async def tick(self, now: datetime | None = None) -> tuple[int, int]:
        """Run both sweeps once. Returns (pulls enqueued, expiries enqueued).

        A failing sweep is logged and does not stop the other one.
        """
        now = now or datetime.now(UTC)
        pulls = expiries = 0
        try:
            pulls = await self.sweep_due_sources(now)
        except Exception:
            logger.exception("Due-sources sweep failed")
        try:
            expiries = await self.sweep_retention(now)
        except Exception:
            logger.exception("Retention sweep failed")
        return pulls, expiries

    async def sweep_due_sources(self, now: datetime) -> int:
        """Enqueue a pull for every due source. Returns how many were enqueued."""
        enqueued = 0
        for source in await self.sources.list_due(now):
            try:
                if await self._enqueue_pull(source, now):
                    enqueued += 1
            except Exception as e:
                logger.error("Failed to enqueue pull for source %s: %s", source.id, e)
        if enqueued:
            logger.info("Enqueued %d pulls", enqueued)
        return enqueued

    async def _enqueue_pull(self, source: Source, now: datetime) -> bool:
        window = next_window(source, now, self.window, self.min_delay, self.upstream_retention)
        if window is None:
            return False
        return await self.outbox.append_once(
            LogPullRequested(
                id=pull_event_id(
                    source.id, source.last_pulled_at, dispatch_slot(now, self.window)
                ),
                source_id=source.id,
                tenant_id=source.tenant_id,
                period_start=window.start,
                period_end=window.end,
            )
        )

    async def sweep_retention(self, now: datetime) -> int:
        """Enqueue an expiry for every tenant with its retention period."""
        tick = _floor_minute(now)
        enqueued = 0
        for tenant in await self.tenants.list():
            try:
                appended = await self.outbox.append_once(
                    LogExpireRequested(
                        id=expire_event_id(tenant.id, tick),
                        tenant_id=tenant.id,
                        retention_days=tenant.retention_days,
                    )
                )
            except Exception as e:
                logger.error("Failed to enqueue expiry for tenant %s: %s", tenant.id, e)
                continue
            if appended:
                enqueued += 1
        logger.debug("Enqueued %d expiry tasks", enqueued)
        return enqueued
