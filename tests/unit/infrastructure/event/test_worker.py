"""Unit tests for the Worker poll cycle."""

import asyncio
from datetime import UTC, datetime
from typing import ClassVar
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from logvault.domain.shared.error import SkippedEvents
from logvault.domain.shared.event import (
    ClaimResult,
    Delivery,
    Event,
    EventHandler,
    EventId,
    Queue,
)
from logvault.domain.shared.outbox import Outbox
from logvault.infrastructure.event.worker import Worker, WorkerSettings


class PingEvent(Event):
    id: EventId
    data: str


class PingHandler(EventHandler[PingEvent]):
    __poll_interval__: ClassVar[float] = 0.01

    processed_events: list[PingEvent]

    async def handle(self, event: PingEvent) -> None:
        self.processed_events.append(event)


class BatchPingHandler(EventHandler[PingEvent]):
    __batch_size__: ClassVar[int] = 10
    __queue__: ClassVar[Queue] = Queue.LOW

    batches: list[list[PingEvent]]

    async def handle_batch(self, events: list[PingEvent]) -> None:
        self.batches.append(events)


class FailingHandler(EventHandler[PingEvent]):
    __max_retries__: ClassVar[int] = 4

    async def handle(self, event: PingEvent) -> None:
        raise RuntimeError("Processing failed")


class SkippingHandler(EventHandler[PingEvent]):
    __batch_size__: ClassVar[int] = 10

    skip: list[EventId]

    async def handle_batch(self, events: list[PingEvent]) -> None:
        raise SkippedEvents(self.skip, "not mine")


def _ping(data: str = "x") -> PingEvent:
    return PingEvent(id=EventId(uuid4()), data=data)


def _claim(*events: Event) -> ClaimResult:
    return ClaimResult(
        deliveries=[Delivery(id=f"d-{i}", event=e) for i, e in enumerate(events)],
        claimed_at=datetime.now(UTC),
    )


def make_mock_container(outbox: AsyncMock, handler: EventHandler | None = None):
    """Mock DI container whose UOW scope hands out the outbox and handler."""

    async def get_dependency(cls):
        if cls == Outbox:
            return outbox
        if handler is not None and issubclass(cls, EventHandler):
            return handler
        raise LookupError(cls)

    scope = AsyncMock()
    scope.get = AsyncMock(side_effect=get_dependency)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=scope)
    context.__aexit__ = AsyncMock(return_value=None)

    container = MagicMock()
    container.return_value = context
    return container


def _outbox(result: ClaimResult) -> AsyncMock:
    outbox = AsyncMock(spec=Outbox)
    outbox.claim.return_value = result
    return outbox


class TestWorkerSettings:
    def test_config_read_from_handler(self):
        worker = Worker(BatchPingHandler, index=2)

        assert worker.name == "BatchPingHandler-2"
        assert worker.consumer_group == "BatchPingHandler"
        assert worker.settings.queue == Queue.LOW
        assert worker.settings.batch_size == 10
        assert worker.settings.event_type is PingEvent

    def test_overrides(self):
        worker = Worker(PingHandler, poll_interval=2.0, max_retries=0)

        assert worker.settings.poll_interval == 2.0
        assert worker.settings.max_retries == 0

    def test_start_requires_container(self):
        with pytest.raises(RuntimeError, match="Container not set"):
            Worker(PingHandler).start()

    @pytest.mark.parametrize(
        "overrides",
        [{"batch_size": 0}, {"poll_interval": 0}, {"max_retries": -1}, {"claim_timeout": 0}],
    )
    def test_invalid_settings_rejected(self, overrides):
        values = {"name": "w", "event_type": PingEvent, **overrides}
        with pytest.raises(ValueError):
            WorkerSettings(**values)


class TestWorkerPollOnce:
    async def test_claims_and_marks_delivered_by_delivery_id(self):
        event = _ping()
        outbox = _outbox(_claim(event))
        handler = PingHandler(processed_events=[])
        worker = Worker(PingHandler)
        worker.set_container(make_mock_container(outbox, handler))

        assert await worker._poll_once() is True

        assert handler.processed_events == [event]
        outbox.claim.assert_awaited_once_with(
            event_types=[PingEvent], limit=1, consumer_group="PingHandler"
        )
        outbox.mark_delivered.assert_awaited_once_with("d-0")
        assert worker.stats.processed == 1
        assert worker.stats.busy is False

    async def test_idle_when_nothing_claimed(self):
        outbox = _outbox(_claim())
        handler = PingHandler(processed_events=[])
        worker = Worker(PingHandler)
        worker.set_container(make_mock_container(outbox, handler))

        assert await worker._poll_once() is False

        assert handler.processed_events == []
        outbox.mark_delivered.assert_not_awaited()

    async def test_batch_handler_gets_whole_claim(self):
        events = [_ping("a"), _ping("b")]
        outbox = _outbox(_claim(*events))
        handler = BatchPingHandler(batches=[])
        worker = Worker(BatchPingHandler)
        worker.set_container(make_mock_container(outbox, handler))

        await worker._poll_once()

        assert handler.batches == [events]
        assert outbox.mark_delivered.await_count == 2

    async def test_failure_schedules_retry(self):
        outbox = _outbox(_claim(_ping()))
        worker = Worker(FailingHandler)
        worker.set_container(make_mock_container(outbox, FailingHandler()))

        assert await worker._poll_once() is True

        outbox.mark_failed_with_retry.assert_awaited_once_with(
            "d-0", "Processing failed", max_retries=4
        )
        outbox.mark_delivered.assert_not_awaited()
        assert worker.stats.failed == 1
        assert isinstance(worker.stats.last_error, RuntimeError)

    async def test_skipped_events_are_not_retried(self):
        keep, skip = _ping("keep"), _ping("skip")
        outbox = _outbox(_claim(keep, skip))
        worker = Worker(SkippingHandler)
        worker.set_container(make_mock_container(outbox, SkippingHandler(skip=[skip.id])))

        await worker._poll_once()

        outbox.mark_skipped.assert_awaited_once_with("d-1", "not mine")
        outbox.mark_delivered.assert_awaited_once_with("d-0")
        outbox.mark_failed_with_retry.assert_not_awaited()


class TestWorkerLifecycle:
    async def test_start_and_stop(self):
        outbox = _outbox(_claim())
        worker = Worker(PingHandler)
        worker.set_container(make_mock_container(outbox, PingHandler(processed_events=[])))

        task = worker.start()
        await asyncio.sleep(0.03)
        worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert task.done()
        assert outbox.claim.await_count >= 1
