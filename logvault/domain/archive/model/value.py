from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import model_validator
from typing_extensions import Self

from logvault.domain.shared.model.value import ValueObject


class JobStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    EXPIRED = "expired"


class TimeWindow(ValueObject):
    """Half-open `[start, end)` range of log time requested in one pull."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> Self:
        if self.start >= self.end:
            raise ValueError(f"window start {self.start} must be before end {self.end}")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @classmethod
    def ending_at(cls, end: datetime, length: timedelta) -> "TimeWindow":
        return cls(start=end - length, end=end)

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"


class StoredObject(ValueObject):
    """What a single archive store reports back after a successful upload."""

    key: str
    digest: str  # hex sha256 of the compressed bytes
    byte_count: int
    line_count: int


class ArchiveReceipt(StoredObject):
    """A StoredObject plus the label of the provider that accepted it."""

    provider: str
