"""Port for the event log and its per-consumer deliveries."""

from enum import StrEnum
from typing import Protocol

from logvault.domain.shared.event import ClaimResult, Event, EventId


class DeliveryStatus(StrEnum):
    PENDING = "pending"
    CLAIMED = "claimed"
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


class EventRepository(Protocol):
    """Append-only event log plus one delivery row per (event, consumer group).

    Only deliveries change state; events are never updated or removed.
    """

    async def save_with_deliveries(self, event: Event, consumer_groups: set[str]) -> None:
        """Store the event and a pending delivery for each group.

        With no groups the event is only logged.
        """
        ...

    async def exists(self, event_id: EventId) -> bool: ...

    async def get(self, event_id: EventId) -> Event | None: ...

    async def claim_delivery(
        self,
        consumer_group: str,
        event_types: list[str],
        limit: int = 1,
    ) -> ClaimResult:
        """Lock and claim up to `limit` available deliveries of the group.

        Rows locked by another transaction are skipped, never waited on.
        """
        ...

    async def set_delivery_status(
        self,
        delivery_id: str,
        status: DeliveryStatus,
        note: str | None = None,
    ) -> None: ...

    async def mark_failed_with_retry(
        self,
        delivery_id: str,
        error: str,
        max_retries: int,
    ) -> None:
        """Count a failed attempt.

        The delivery becomes pending again after a backoff, or failed for good
        once `max_retries` attempts have failed.
        """
        ...

    async def reset_stale_deliveries(self, timeout_seconds: float) -> int:
        """Return claims older than the timeout to pending. Returns how many."""
        ...
