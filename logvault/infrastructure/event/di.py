"""Dependency injection provider for the task system."""

import logging
from datetime import timedelta
from typing import Any, NewType

from dishka import AsyncContainer, provide

from logvault.config import Config
from logvault.domain.archive.handler import (
    ExpireArchives,
    PullLogWindow,
    RecordSourcePulled,
    VerifyArchivedObject,
)
from logvault.domain.archive.port import SourceRepository, TenantRepository
from logvault.domain.archive.schedule import ZoneScheduler
from logvault.domain.archive.service import ArchiveService
from logvault.domain.shared.event import EventHandler
from logvault.domain.shared.model.subscription_registry import SubscriptionRegistry
from logvault.domain.shared.outbox import Outbox
from logvault.domain.shared.port.event_repository import EventRepository
from logvault.infrastructure.event.worker import ScheduleConfig, ScheduleConfigs, WorkerPool
from logvault.util.di.base import Provider
from logvault.util.di.scope import Scope

logger = logging.getLogger(__name__)


# Type alias for handler list
HandlerTypes = NewType("HandlerTypes", list[type[EventHandler[Any]]])

# All task handlers for WorkerPool registration
HANDLERS: HandlerTypes = HandlerTypes(
    [
        # Bookkeeping, critical lane
        RecordSourcePulled,
        # Pulls, default lane
        PullLogWindow,
        # Verification and expiry, low lane
        VerifyArchivedObject,
        ExpireArchives,
    ]
)

ZONE_SCHEDULE_ID = "zone-scheduler"


def build_subscription_registry(handlers: HandlerTypes) -> SubscriptionRegistry:
    registry = SubscriptionRegistry({})
    for handler in handlers:
        registry.setdefault(handler.__event_type__.__name__, set()).add(handler.__name__)
    return registry


def build_schedules(config: Config) -> ScheduleConfigs:
    """Scheduled tasks to register on the pool."""
    schedules: list[ScheduleConfig] = []
    if config.scheduler.enabled:
        schedules.append(
            ScheduleConfig(
                schedule_type=ZoneScheduler,
                id=ZONE_SCHEDULE_ID,
                interval=config.scheduler.interval,
            )
        )
    return ScheduleConfigs(schedules)


class EventProvider(Provider):
    """Handlers, schedules and the outbox live per unit of work.

    The handler list, subscriptions and worker pool are built once.
    """

    @provide(scope=Scope.UOW)
    def get_outbox(self, repo: EventRepository, registry: SubscriptionRegistry) -> Outbox:
        return Outbox(repo, registry)

    archive_service = provide(ArchiveService, scope=Scope.UOW)

    for _handler_type in HANDLERS:
        locals()[_handler_type.__name__] = provide(_handler_type, scope=Scope.UOW)

    @provide(scope=Scope.UOW)
    def get_zone_scheduler(
        self,
        sources: SourceRepository,
        tenants: TenantRepository,
        outbox: Outbox,
        config: Config,
    ) -> ZoneScheduler:
        return ZoneScheduler(
            sources=sources,
            tenants=tenants,
            outbox=outbox,
            window=config.scheduler.window,
            min_delay=config.upstream.min_delay,
            upstream_retention=timedelta(days=config.upstream.retention_days),
        )

    @provide(scope=Scope.APP)
    def get_handler_types(self) -> HandlerTypes:
        return HANDLERS

    @provide(scope=Scope.APP)
    def get_subscription_registry(self, handler_types: HandlerTypes) -> SubscriptionRegistry:
        registry = build_subscription_registry(handler_types)
        logger.info(
            "Built subscription registry: %d task types, %d consumer groups",
            len(registry),
            sum(len(v) for v in registry.values()),
        )
        return registry

    @provide(scope=Scope.APP)
    def get_schedules(self, config: Config) -> ScheduleConfigs:
        return build_schedules(config)

    @provide(scope=Scope.APP)
    def get_worker_pool(
        self,
        container: AsyncContainer,
        handler_types: HandlerTypes,
        schedules: ScheduleConfigs,
        config: Config,
    ) -> WorkerPool:
        """WorkerPool with pull-based task handlers and the zone scheduler."""
        pool = WorkerPool(
            container=container,
            stale_claim_interval=config.worker.stale_claim_interval,
            schedules=schedules,
            concurrency=config.worker.concurrency,
            poll_interval=config.worker.poll_interval,
            max_retries=config.worker.max_retries,
        )

        for handler_type in handler_types:
            pool.register(handler_type)

        logger.info("WorkerPool created with %d workers", len(pool.workers))
        return pool
