"""SQLAlchemy adapter for the event log and its deliveries."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from logvault.domain.shared.event import ClaimResult, Delivery, Event, EventId
from logvault.domain.shared.port.event_repository import DeliveryStatus, EventRepository
from logvault.infrastructure.persistence.tables import deliveries_table, events_table

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30


def retry_backoff(attempt: int) -> timedelta:
    """Delay before retry number `attempt`: 5s, 25s, then capped at 30s."""
    return timedelta(seconds=min(MAX_BACKOFF_SECONDS, 5**attempt))


def _now() -> datetime:
    return datetime.now(UTC)


class SQLAlchemyEventRepository(EventRepository):
    """Event log in `events`, delivery state in `deliveries`.

    A retried delivery stays `pending` with `available_at` pushed into the
    future, so claiming needs no dialect-specific interval arithmetic.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save_with_deliveries(self, event: Event, consumer_groups: set[str]) -> None:
        now = _now()
        await self._session.execute(
            insert(events_table).values(
                id=str(event.id),
                event_type=type(event).__name__,
                payload=event.model_dump(mode="json"),
                created_at=now,
            )
        )
        for group in sorted(consumer_groups):
            await self._session.execute(
                insert(deliveries_table).values(
                    id=str(uuid4()),
                    event_id=str(event.id),
                    consumer_group=group,
                    status=DeliveryStatus.PENDING.value,
                    retry_count=0,
                    available_at=now,
                    updated_at=now,
                )
            )

    async def exists(self, event_id: EventId) -> bool:
        result = await self._session.execute(
            select(events_table.c.id).where(events_table.c.id == str(event_id))
        )
        return result.first() is not None

    async def get(self, event_id: EventId) -> Event | None:
        result = await self._session.execute(
            select(events_table.c.event_type, events_table.c.payload).where(
                events_table.c.id == str(event_id)
            )
        )
        row = result.first()
        return self._load(row.event_type, row.payload) if row else None

    async def claim_delivery(
        self,
        consumer_group: str,
        event_types: list[str],
        limit: int = 1,
    ) -> ClaimResult:
        now = _now()
        stmt = (
            select(
                deliveries_table.c.id,
                events_table.c.event_type,
                events_table.c.payload,
            )
            .join(events_table, deliveries_table.c.event_id == events_table.c.id)
            .where(
                deliveries_table.c.consumer_group == consumer_group,
                deliveries_table.c.status == DeliveryStatus.PENDING.value,
                deliveries_table.c.available_at <= now,
                events_table.c.event_type.in_(event_types),
            )
            .order_by(events_table.c.created_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True, of=deliveries_table)
        )
        rows = (await self._session.execute(stmt)).all()
        if not rows:
            return ClaimResult(deliveries=[], claimed_at=now)

        await self._session.execute(
            update(deliveries_table)
            .where(deliveries_table.c.id.in_([r.id for r in rows]))
            .values(status=DeliveryStatus.CLAIMED.value, claimed_at=now, updated_at=now)
        )

        deliveries: list[Delivery] = []
        for row in rows:
            event = self._load(row.event_type, row.payload)
            if event is None:
                # Would otherwise come back on every stale-claim reset
                await self.set_delivery_status(
                    row.id, DeliveryStatus.FAILED, note=f"unreadable {row.event_type} payload"
                )
                continue
            deliveries.append(Delivery(id=row.id, event=event))
        return ClaimResult(deliveries=deliveries, claimed_at=now)

    async def set_delivery_status(
        self,
        delivery_id: str,
        status: DeliveryStatus,
        note: str | None = None,
    ) -> None:
        now = _now()
        values: dict[str, Any] = {"status": status.value, "updated_at": now}
        if status is DeliveryStatus.DELIVERED:
            values["delivered_at"] = now
        if note is not None:
            values["delivery_error"] = note
        await self._update(delivery_id, values)

    async def mark_failed_with_retry(
        self,
        delivery_id: str,
        error: str,
        max_retries: int,
    ) -> None:
        result = await self._session.execute(
            select(deliveries_table.c.retry_count).where(deliveries_table.c.id == delivery_id)
        )
        retry_count = result.scalar_one_or_none()
        if retry_count is None:
            logger.warning("Delivery %s vanished before its failure was recorded", delivery_id)
            return

        now = _now()
        attempts = retry_count + 1
        values: dict[str, Any] = {
            "delivery_error": error,
            "retry_count": attempts,
            "updated_at": now,
        }
        if attempts >= max_retries:
            values.update(status=DeliveryStatus.FAILED.value, delivered_at=now)
            logger.warning(
                "Delivery %s failed permanently after %d attempts: %s", delivery_id, attempts, error
            )
        else:
            values.update(
                status=DeliveryStatus.PENDING.value,
                claimed_at=None,
                available_at=now + retry_backoff(attempts),
            )
        await self._update(delivery_id, values)

    async def reset_stale_deliveries(self, timeout_seconds: float) -> int:
        now = _now()
        result = await self._session.execute(
            update(deliveries_table)
            .where(
                deliveries_table.c.status == DeliveryStatus.CLAIMED.value,
                deliveries_table.c.claimed_at < now - timedelta(seconds=timeout_seconds),
            )
            .values(
                status=DeliveryStatus.PENDING.value,
                claimed_at=None,
                available_at=now,
                updated_at=now,
            )
        )
        return result.rowcount

    async def _update(self, delivery_id: str, values: dict[str, Any]) -> None:
        await self._session.execute(
            update(deliveries_table).where(deliveries_table.c.id == delivery_id).values(**values)
        )

    def _load(self, event_type: str, payload: dict | str) -> Event | None:
        event_cls = Event._registry.get(event_type)
        if event_cls is None:
            logger.warning("Unknown event type %r in the event log", event_type)
            return None
        try:
            if isinstance(payload, str):
                return event_cls.model_validate_json(payload)
            return event_cls.model_validate(payload)
        except ValueError as e:
            logger.error("Cannot load %s payload: %s", event_type, e)
            return None
