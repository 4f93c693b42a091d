from datetime import UTC, datetime
from uuid import uuid4


from logvault.domain.archive.event import LogPullRequested
from logvault.domain.shared.event import (
    ClaimResult,
    Delivery,
    Event,
    EventId,
    Queue,
)


class TestEventRegistry:
    def test_subclasses_registered_by_name(self):
        assert Event._registry["LogPullRequested"] is LogPullRequested


class TestClaimResult:
    def test_events_follow_deliveries(self):
        event = LogPullRequested(
            id=EventId(uuid4()),
            source_id=uuid4(),
            tenant_id=uuid4(),
            period_start=datetime(2024, 1, 1, 9, tzinfo=UTC),
            period_end=datetime(2024, 1, 1, 10, tzinfo=UTC),
        )
        result = ClaimResult(
            deliveries=[Delivery(id="d-1", event=event)], claimed_at=datetime.now(UTC)
        )

        assert result
        assert len(result) == 1
        assert result.events == [event]
        assert [d.id for d in result] == ["d-1"]

    def test_empty_is_falsy(self):
        assert not ClaimResult(deliveries=[], claimed_at=datetime.now(UTC))


class TestEventHandler:
    def test_event_type_and_defaults(self):
        from logvault.domain.archive.handler import PullLogWindow, RecordSourcePulled

        assert PullLogWindow.__event_type__ is LogPullRequested
        assert PullLogWindow.__queue__ == Queue.DEFAULT
        assert RecordSourcePulled.__queue__ == Queue.CRITICAL
        assert PullLogWindow.__batch_size__ == 1
