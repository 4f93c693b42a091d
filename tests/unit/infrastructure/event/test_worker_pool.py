"""Unit tests for WorkerPool and ScheduleConfig."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, ClassVar
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from logvault.domain.shared.event import (
    ClaimResult,
    Event,
    EventHandler,
    EventId,
    Queue,
    Schedule,
)
from logvault.domain.shared.outbox import Outbox
from logvault.infrastructure.event.worker import ScheduleConfig, ScheduleConfigs, WorkerPool


class TickEvent(Event):
    id: EventId


class CriticalHandler(EventHandler[TickEvent]):
    __queue__: ClassVar[Queue] = Queue.CRITICAL
    __poll_interval__: ClassVar[float] = 0.01

    async def handle(self, event: TickEvent) -> None:
        pass


class DefaultHandler(EventHandler[TickEvent]):
    __poll_interval__: ClassVar[float] = 0.01

    async def handle(self, event: TickEvent) -> None:
        pass


class LowHandler(EventHandler[TickEvent]):
    __queue__: ClassVar[Queue] = Queue.LOW
    __poll_interval__: ClassVar[float] = 0.01

    async def handle(self, event: TickEvent) -> None:
        pass


@dataclass
class RecordingSchedule(Schedule):
    calls: list[dict[str, Any]] = field(default_factory=list)
    fail: bool = False

    async def run(self, **params: Any) -> None:
        if self.fail:
            raise RuntimeError("tick failed")
        self.calls.append(params)


LANES = {"critical": 6, "default": 3, "low": 1}


def make_mock_container(schedule: Schedule | None = None):
    outbox = AsyncMock(spec=Outbox)
    outbox.claim.return_value = ClaimResult(deliveries=[], claimed_at=datetime.now(UTC))
    outbox.reset_stale_claims = AsyncMock(return_value=0)

    async def get_dependency(cls):
        if cls == Outbox:
            return outbox
        if schedule is not None and issubclass(cls, Schedule):
            return schedule
        if issubclass(cls, EventHandler):
            return cls()
        raise LookupError(cls)

    scope = AsyncMock()
    scope.get = AsyncMock(side_effect=get_dependency)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=scope)
    context.__aexit__ = AsyncMock(return_value=None)

    container = MagicMock()
    container.return_value = context
    return container


class TestScheduleConfig:
    def test_interval_trigger(self):
        config = ScheduleConfig(schedule_type=RecordingSchedule, id="s", interval=60)
        assert isinstance(config.trigger(), IntervalTrigger)

    def test_cron_trigger(self):
        config = ScheduleConfig(schedule_type=RecordingSchedule, id="s", cron="*/5 * * * *")
        assert isinstance(config.trigger(), CronTrigger)

    def test_needs_exactly_one_trigger(self):
        with pytest.raises(ValueError, match="exactly one"):
            ScheduleConfig(schedule_type=RecordingSchedule, id="s")
        with pytest.raises(ValueError, match="exactly one"):
            ScheduleConfig(schedule_type=RecordingSchedule, id="s", cron="* * * * *", interval=1)


class TestWorkerPoolRegistration:
    def test_workers_per_lane(self):
        pool = WorkerPool(concurrency=LANES)

        pool.register(CriticalHandler)
        pool.register(DefaultHandler)
        pool.register(LowHandler)

        assert len(pool.get_workers(CriticalHandler)) == 6
        assert len(pool.get_workers(DefaultHandler)) == 3
        assert len(pool.get_workers(LowHandler)) == 1
        assert len(pool.workers) == 10

    def test_workers_share_consumer_group(self):
        pool = WorkerPool(concurrency=LANES)

        workers = pool.register(DefaultHandler)

        assert [w.name for w in workers] == [
            "DefaultHandler-0",
            "DefaultHandler-1",
            "DefaultHandler-2",
        ]
        assert {w.consumer_group for w in workers} == {"DefaultHandler"}

    def test_unconfigured_lane_gets_one_worker(self):
        pool = WorkerPool(concurrency={"default": 0})

        assert len(pool.register(DefaultHandler)) == 1
        assert len(pool.register(CriticalHandler)) == 1

    def test_overrides_reach_workers(self):
        pool = WorkerPool(poll_interval=3.0, max_retries=7)

        (worker,) = pool.register(LowHandler)

        assert worker.settings.poll_interval == 3.0
        assert worker.settings.max_retries == 7

    def test_set_container_propagates(self):
        pool = WorkerPool(concurrency=LANES)
        pool.register(DefaultHandler)
        container = make_mock_container()

        pool.set_container(container)

        assert all(w._container is container for w in pool.workers)


class TestWorkerPoolLifecycle:
    async def test_start_requires_container(self):
        pool = WorkerPool()
        pool.register(DefaultHandler)

        with pytest.raises(RuntimeError, match="Container not set"):
            await pool.start()

    async def test_start_and_stop(self):
        pool = WorkerPool(container=make_mock_container(), stale_claim_interval=0, concurrency=LANES)
        pool.register(DefaultHandler)
        pool.register(LowHandler)

        await pool.start()
        await asyncio.sleep(0.02)
        assert all(w.task is not None and not w.task.done() for w in pool.workers)

        await pool.stop(timeout=1)

        assert all(w.task.done() for w in pool.workers)

    async def test_context_manager(self):
        pool = WorkerPool(container=make_mock_container(), stale_claim_interval=0)
        pool.register(DefaultHandler)

        async with pool:
            assert all(w.task is not None for w in pool.workers)

        assert all(w.task.done() for w in pool.workers)


class TestSchedules:
    async def test_run_schedule_once_passes_params(self):
        schedule = RecordingSchedule()
        pool = WorkerPool(container=make_mock_container(schedule))
        config = ScheduleConfig(
            schedule_type=RecordingSchedule, id="s", interval=60, params={"now": "t"}
        )

        await pool.run_schedule_once(config)

        assert schedule.calls == [{"now": "t"}]

    async def test_failing_schedule_is_counted_not_raised(self):
        schedule = RecordingSchedule(fail=True)
        pool = WorkerPool(container=make_mock_container(schedule))
        config = ScheduleConfig(schedule_type=RecordingSchedule, id="s", interval=60)

        await pool._run_schedule(config)
        await pool._run_schedule(config)

        assert pool._schedule_failures["s"] == 2

        schedule.fail = False
        await pool._run_schedule(config)
        assert "s" not in pool._schedule_failures

    async def test_start_registers_schedules(self):
        schedule = RecordingSchedule()
        config = ScheduleConfig(schedule_type=RecordingSchedule, id="tick", interval=3600)
        pool = WorkerPool(
            container=make_mock_container(schedule),
            stale_claim_interval=0,
            schedules=ScheduleConfigs([config]),
        )

        await pool.start()
        try:
            assert pool._scheduler is not None
            assert [s.id for s in await pool._scheduler.get_schedules()] == ["tick"]
        finally:
            await pool.stop(timeout=1)

        assert pool._scheduler is None
