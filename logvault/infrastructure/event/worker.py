"""Workers that drain the outbox, and the pool that runs them with the schedules."""

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, NewType

from apscheduler import AsyncScheduler
from apscheduler.abc import Trigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from dishka import AsyncContainer

from logvault.domain.shared.error import SkippedEvents
from logvault.domain.shared.event import ClaimResult, Event, EventHandler, Queue, Schedule
from logvault.domain.shared.outbox import Outbox
from logvault.util.di.scope import Scope

logger = logging.getLogger(__name__)

# Consecutive failures after which a schedule is reported as critical
SCHEDULE_FAILURE_ALERT = 5


@dataclass
class ScheduleConfig:
    """A scheduled task and its trigger. Exactly one of cron or interval is set."""

    schedule_type: type[Schedule]
    id: str
    cron: str | None = None
    interval: float | None = None  # Seconds
    params: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if (self.cron is None) == (self.interval is None):
            raise ValueError(f"schedule {self.id} needs exactly one of cron or interval")

    def trigger(self) -> Trigger:
        if self.cron is not None:
            return CronTrigger.from_crontab(self.cron)
        return IntervalTrigger(seconds=self.interval)


ScheduleConfigs = NewType("ScheduleConfigs", list[ScheduleConfig])


@dataclass(frozen=True)
class WorkerSettings:
    name: str
    event_type: type[Event]
    queue: Queue = Queue.DEFAULT
    batch_size: int = 1
    poll_interval: float = 0.5
    max_retries: int = 3
    claim_timeout: float = 300.0

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.claim_timeout <= 0:
            raise ValueError("claim_timeout must be > 0")

    @classmethod
    def for_handler(
        cls,
        handler_type: type[EventHandler[Any]],
        index: int = 0,
        *,
        poll_interval: float | None = None,
        max_retries: int | None = None,
    ) -> "WorkerSettings":
        """Settings from the handler's class variables, with optional overrides."""
        return cls(
            name=f"{handler_type.__name__}-{index}",
            event_type=handler_type.__event_type__,
            queue=handler_type.__queue__,
            batch_size=handler_type.__batch_size__,
            poll_interval=poll_interval or handler_type.__poll_interval__,
            max_retries=max_retries if max_retries is not None else handler_type.__max_retries__,
            claim_timeout=handler_type.__claim_timeout__,
        )


@dataclass
class WorkerStats:
    """In-memory counters of one worker. Not persisted."""

    processed: int = 0
    failed: int = 0
    skipped: int = 0
    busy: bool = False
    last_claim_at: datetime | None = None
    last_error: Exception | None = None


class Worker:
    """Claims deliveries for one handler and runs it, one UOW scope per poll.

    Several workers of the same handler share its consumer group; the
    outbox's row locking keeps them from claiming the same delivery. The
    outcome of a poll is recorded on the deliveries in the same transaction
    as the handler's own writes.
    """

    def __init__(
        self,
        handler_type: type[EventHandler[Any]],
        *,
        index: int = 0,
        poll_interval: float | None = None,
        max_retries: int | None = None,
    ) -> None:
        self._handler_type = handler_type
        self._settings = WorkerSettings.for_handler(
            handler_type, index, poll_interval=poll_interval, max_retries=max_retries
        )
        self._stats = WorkerStats()
        self._stopping = False
        self._task: asyncio.Task | None = None
        self._container: AsyncContainer | None = None

    @property
    def name(self) -> str:
        return self._settings.name

    @property
    def consumer_group(self) -> str:
        return self._handler_type.__name__

    @property
    def handler_type(self) -> type[EventHandler[Any]]:
        return self._handler_type

    @property
    def settings(self) -> WorkerSettings:
        return self._settings

    @property
    def stats(self) -> WorkerStats:
        return self._stats

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    @property
    def stopping(self) -> bool:
        return self._stopping

    def set_container(self, container: AsyncContainer) -> None:
        self._container = container

    def start(self) -> asyncio.Task:
        if self._container is None:
            raise RuntimeError("Container not set. Call set_container() first.")
        self._stopping = False
        self._task = asyncio.create_task(self._run(), name=f"worker-{self.name}")
        logger.info("Worker '%s' started on lane %s", self.name, self._settings.queue)
        return self._task

    def stop(self) -> None:
        """Ask the loop to exit once the current poll is finished."""
        self._stopping = True

    async def _run(self) -> None:
        try:
            while not self._stopping:
                worked = await self._poll_once()
                if not worked and not self._stopping:
                    await asyncio.sleep(self._settings.poll_interval)
        except asyncio.CancelledError:
            logger.info("Worker '%s' cancelled", self.name)
            raise
        except Exception as e:
            logger.exception("Worker '%s' crashed", self.name)
            self._stats.last_error = e
            raise
        finally:
            logger.info("Worker '%s' stopped", self.name)

    async def _poll_once(self) -> bool:
        """Claim and process one batch. Returns False when nothing was claimed."""
        if self._container is None:
            raise RuntimeError("Container not set")

        async with self._container(scope=Scope.UOW) as scope:
            outbox = await scope.get(Outbox)
            result = await outbox.claim(
                event_types=[self._settings.event_type],
                limit=self._settings.batch_size,
                consumer_group=self.consumer_group,
            )
            if not result:
                return False

            self._stats.busy = True
            self._stats.last_claim_at = result.claimed_at
            try:
                handler = await scope.get(self._handler_type)
                await self._dispatch(handler, result)
            except SkippedEvents as e:
                await self._settle_skipped(outbox, result, e)
            except Exception as e:
                await self._settle_failed(outbox, result, e)
            else:
                for delivery in result:
                    await outbox.mark_delivered(delivery.id)
                self._stats.processed += len(result)
            finally:
                self._stats.busy = False

        return True

    async def _dispatch(self, handler: EventHandler[Any], result: ClaimResult) -> None:
        if self._settings.batch_size > 1:
            await handler.handle_batch(result.events)
        else:
            await handler.handle(result.events[0])

    async def _settle_skipped(self, outbox: Outbox, result: ClaimResult, e: SkippedEvents) -> None:
        skipped = {str(event_id) for event_id in e.event_ids}
        logger.warning("Worker '%s' skipping %d events: %s", self.name, len(skipped), e.reason)
        for delivery in result:
            if str(delivery.event.id) in skipped:
                await outbox.mark_skipped(delivery.id, e.reason)
                self._stats.skipped += 1
            else:
                await outbox.mark_delivered(delivery.id)
                self._stats.processed += 1

    async def _settle_failed(self, outbox: Outbox, result: ClaimResult, e: Exception) -> None:
        logger.error("Worker '%s' failed %d deliveries: %s", self.name, len(result), e)
        self._stats.failed += len(result)
        self._stats.last_error = e
        for delivery in result:
            await outbox.mark_failed_with_retry(
                delivery.id,
                str(e) or type(e).__name__,
                max_retries=self._settings.max_retries,
            )


class WorkerPool:
    """Runs the workers of every registered handler plus the scheduled tasks.

    A handler gets one worker per unit of its lane's concurrency, so with
    the default lanes a critical handler runs six workers and a low one
    runs a single worker. Stale claims are released periodically.

    Usage:
        pool = WorkerPool(container, concurrency={"critical": 6, "default": 3, "low": 1})
        pool.register(PullLogWindow)

        async with pool:
            await stop.wait()
    """

    def __init__(
        self,
        container: AsyncContainer | None = None,
        stale_claim_interval: float = 60.0,
        schedules: ScheduleConfigs | None = None,
        concurrency: dict[str, int] | None = None,
        poll_interval: float | None = None,
        max_retries: int | None = None,
    ) -> None:
        self._container = container
        self._workers: list[Worker] = []
        self._schedules = schedules or ScheduleConfigs([])
        self._concurrency = concurrency or {}
        self._poll_interval = poll_interval
        self._max_retries = max_retries
        self._stale_claim_interval = stale_claim_interval
        self._stale_claim_task: asyncio.Task | None = None
        self._scheduler: AsyncScheduler | None = None
        self._exit_stack: AsyncExitStack | None = None
        self._schedule_failures: dict[str, int] = {}
        self._stopping = False

    @property
    def workers(self) -> list[Worker]:
        return self._workers

    @property
    def schedules(self) -> ScheduleConfigs:
        return self._schedules

    def set_container(self, container: AsyncContainer) -> None:
        self._container = container
        for worker in self._workers:
            worker.set_container(container)

    def lane_concurrency(self, queue: Queue) -> int:
        return max(1, self._concurrency.get(queue.value, 1))

    def register(self, handler_type: type[EventHandler[Any]]) -> list[Worker]:
        """Create the workers for a handler according to its lane."""
        workers = [
            Worker(
                handler_type,
                index=index,
                poll_interval=self._poll_interval,
                max_retries=self._max_retries,
            )
            for index in range(self.lane_concurrency(handler_type.__queue__))
        ]
        for worker in workers:
            if self._container is not None:
                worker.set_container(self._container)
        self._workers.extend(workers)
        logger.debug(
            "Registered %s: %d workers on lane %s",
            handler_type.__name__,
            len(workers),
            handler_type.__queue__,
        )
        return workers

    def get_workers(self, handler_type: type[EventHandler[Any]]) -> list[Worker]:
        return [w for w in self._workers if w.handler_type is handler_type]

    async def start(self) -> None:
        if self._container is None:
            raise RuntimeError("Container not set. Call set_container() first.")

        self._stopping = False
        self._exit_stack = AsyncExitStack()
        await self._exit_stack.__aenter__()

        if self._schedules:
            self._scheduler = await self._exit_stack.enter_async_context(AsyncScheduler())
            for config in self._schedules:
                await self._scheduler.add_schedule(
                    self._run_schedule,
                    config.trigger(),
                    id=config.id,
                    kwargs={"config": config},
                )
            await self._scheduler.start_in_background()

        for worker in self._workers:
            worker.set_container(self._container)
            worker.start()

        if self._stale_claim_interval > 0:
            self._stale_claim_task = asyncio.create_task(
                self._release_stale_claims(), name="stale-claim-cleanup"
            )

        logger.info(
            "WorkerPool started: %d workers, %d schedules",
            len(self._workers),
            len(self._schedules),
        )

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop scheduling, let workers finish their batch, cancel stragglers."""
        self._stopping = True

        if self._exit_stack is not None:
            await self._exit_stack.aclose()
            self._exit_stack = None
            self._scheduler = None

        for worker in self._workers:
            worker.stop()

        if self._stale_claim_task is not None and not self._stale_claim_task.done():
            self._stale_claim_task.cancel()
            await asyncio.gather(self._stale_claim_task, return_exceptions=True)

        running = [w.task for w in self._workers if w.task is not None and not w.task.done()]
        if running:
            _, pending = await asyncio.wait(running, timeout=timeout)
            if pending:
                logger.warning("Cancelling %d workers still busy after %.0fs", len(pending), timeout)
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        logger.info("WorkerPool stopped")

    async def run_schedule_once(self, config: ScheduleConfig) -> None:
        """Run a scheduled task now, in its own UOW scope."""
        if self._container is None:
            raise RuntimeError("Container not set. Call set_container() first.")
        async with self._container(scope=Scope.UOW) as scope:
            schedule = await scope.get(config.schedule_type)
            await schedule.run(**config.params)

    async def _run_schedule(self, config: ScheduleConfig) -> None:
        try:
            await self.run_schedule_once(config)
        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
            raise
        except Exception as e:
            failures = self._schedule_failures.get(config.id, 0) + 1
            self._schedule_failures[config.id] = failures
            logger.error("Schedule %s failed (%d in a row): %s", config.id, failures, e)
            if failures >= SCHEDULE_FAILURE_ALERT:
                logger.critical("Schedule %s has failed %d times in a row", config.id, failures)
        else:
            self._schedule_failures.pop(config.id, None)

    async def __aenter__(self) -> "WorkerPool":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _release_stale_claims(self) -> None:
        """Periodically hand back claims held longer than any worker's claim timeout."""
        while not self._stopping:
            await asyncio.sleep(self._stale_claim_interval)
            if self._stopping or self._container is None or not self._workers:
                continue
            timeout = max(w.settings.claim_timeout for w in self._workers)
            try:
                async with self._container(scope=Scope.UOW) as scope:
                    outbox = await scope.get(Outbox)
                    released = await outbox.reset_stale_claims(timeout)
            except Exception as e:
                logger.error("Stale claim cleanup failed: %s", e)
                continue
            if released:
                logger.info("Released %d stale claims", released)
