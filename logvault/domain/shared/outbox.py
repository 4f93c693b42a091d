"""Outbox - the archiver's task queue, kept in the same database as its data."""

import logging

from logvault.domain.shared.event import ClaimResult, Event
from logvault.domain.shared.model.subscription_registry import SubscriptionRegistry
from logvault.domain.shared.port.event_repository import DeliveryStatus, EventRepository
from logvault.domain.shared.service import Service

logger = logging.getLogger(__name__)


class Outbox(Service):
    """Enqueues events as tasks and tracks their deliveries.

    Appending writes the event and one delivery per subscribed handler in the
    caller's transaction, so a task exists exactly when the change that
    caused it was committed. Delivery is at least once: a claim whose worker
    died is handed out again after it goes stale.
    """

    repo: EventRepository
    subscriptions: SubscriptionRegistry

    def consumers_of(self, event: Event) -> set[str]:
        return set(self.subscriptions.get(type(event).__name__, ()))

    async def append(self, event: Event) -> None:
        groups = self.consumers_of(event)
        if not groups:
            logger.debug("No handler subscribed to %s, logging only", type(event).__name__)
        await self.repo.save_with_deliveries(event, consumer_groups=groups)

    async def append_once(self, event: Event) -> bool:
        """Append unless the event id is already in the log.

        Returns False for a duplicate. Callers that derive ids from the
        request's content get one task per distinct request.
        """
        if await self.repo.exists(event.id):
            logger.debug("Event %s already enqueued", event.id)
            return False
        await self.append(event)
        return True

    async def claim(
        self,
        event_types: list[type[Event]],
        limit: int,
        consumer_group: str,
    ) -> ClaimResult:
        return await self.repo.claim_delivery(
            consumer_group=consumer_group,
            event_types=[t.__name__ for t in event_types],
            limit=limit,
        )

    async def mark_delivered(self, delivery_id: str) -> None:
        await self.repo.set_delivery_status(delivery_id, DeliveryStatus.DELIVERED)

    async def mark_skipped(self, delivery_id: str, reason: str) -> None:
        await self.repo.set_delivery_status(delivery_id, DeliveryStatus.SKIPPED, note=reason)

    async def mark_failed_with_retry(self, delivery_id: str, error: str, max_retries: int) -> None:
        await self.repo.mark_failed_with_retry(delivery_id, error=error, max_retries=max_retries)

    async def reset_stale_claims(self, timeout_seconds: float) -> int:
        return await self.repo.reset_stale_deliveries(timeout_seconds)
