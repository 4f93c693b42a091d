"""Events, task handlers and scheduled tasks.

Every task in LogVault is an event appended to the outbox. Each handler
subscribed to the event's type receives its own delivery of it, and a pool
of workers per handler claims and processes those deliveries.
"""

from abc import ABC, ABCMeta, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import (
    Any,
    ClassVar,
    Generic,
    Iterator,
    NewType,
    TypeVar,
    dataclass_transform,
    get_args,
    get_origin,
)
from uuid import UUID

from pydantic import Field

from logvault.domain.shared.model.entity import Entity

EventId = NewType("EventId", UUID)

E = TypeVar("E", bound="Event")


class Event(Entity):
    """Base class for events and task payloads.

    Concrete subclasses register themselves by class name so stored payloads
    can be turned back into the right type.
    """

    id: EventId
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    _registry: ClassVar[dict[str, type["Event"]]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        Event._registry[cls.__name__] = cls


class Queue(StrEnum):
    """Priority lane of a handler. Lanes differ in how many workers they get."""

    CRITICAL = "critical"
    DEFAULT = "default"
    LOW = "low"


@dataclass(frozen=True)
class Delivery:
    """A claimed delivery: one event for one consumer group."""

    id: str
    event: Event


@dataclass(frozen=True)
class ClaimResult:
    deliveries: list[Delivery]
    claimed_at: datetime

    @property
    def events(self) -> list[Event]:
        return [d.event for d in self.deliveries]

    def __bool__(self) -> bool:
        return bool(self.deliveries)

    def __len__(self) -> int:
        return len(self.deliveries)

    def __iter__(self) -> Iterator[Delivery]:
        return iter(self.deliveries)


def handled_event_type(cls: type) -> type[Event] | None:
    """Return E for a class declared as ``EventHandler[E]``, else None."""
    for base in getattr(cls, "__orig_bases__", ()):
        if getattr(get_origin(base), "__name__", None) != "EventHandler":
            continue
        (arg,) = get_args(base) or (None,)
        if isinstance(arg, type) and issubclass(arg, Event):
            return arg
    return None


@dataclass_transform()
class _HandlerMeta(ABCMeta):
    def __new__(mcs, name: str, bases: tuple[type, ...], namespace: dict[str, Any]) -> type:
        cls = super().__new__(mcs, name, bases, namespace)
        if any(isinstance(b, mcs) for b in bases):
            cls = dataclass(cls)
            event_type = handled_event_type(cls)
            if event_type is not None:
                cls.__event_type__ = event_type
        return cls


class EventHandler(Generic[E], metaclass=_HandlerMeta):
    """Processes the deliveries of one event type.

    Subclasses are dataclasses; their fields are injected by the container
    for every unit of work. The handled type comes from the generic
    parameter, and the handler's class name is its consumer group.

    Tuning is done with class variables:
        __queue__: lane, which decides how many workers the handler gets
        __batch_size__: deliveries claimed per poll; above 1, handle_batch is used
        __poll_interval__: idle sleep between polls, in seconds
        __max_retries__: failed attempts before a delivery is given up
        __claim_timeout__: seconds after which an unfinished claim is released

    Example:
        class VerifyArchivedObject(EventHandler[LogVerifyRequested]):
            __queue__ = Queue.LOW

            service: ArchiveService

            async def handle(self, event: LogVerifyRequested) -> None:
                await self.service.verify_job(event.job_id)
    """

    __event_type__: ClassVar[type[Event]]
    __queue__: ClassVar[Queue] = Queue.DEFAULT
    __batch_size__: ClassVar[int] = 1
    __poll_interval__: ClassVar[float] = 0.5
    __max_retries__: ClassVar[int] = 3
    __claim_timeout__: ClassVar[float] = 300.0

    async def handle(self, event: E) -> None:
        raise NotImplementedError(
            f"{type(self).__name__} must implement handle() or handle_batch()"
        )

    async def handle_batch(self, events: list[E]) -> None:
        for event in events:
            await self.handle(event)


@dataclass
class Schedule(ABC):
    """A task run on a timer rather than in response to an event.

    Subclasses are dataclasses built by the container. The trigger lives in
    the schedule's config entry, not on the class.
    """

    @abstractmethod
    async def run(self, **params: Any) -> None: ...
