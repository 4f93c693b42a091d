from typing import Generic, NewType, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, RootModel

T = TypeVar("T")

TenantId = NewType("TenantId", UUID)
SourceId = NewType("SourceId", UUID)
JobId = NewType("JobId", UUID)


class ValueObject(BaseModel):
    model_config = ConfigDict(frozen=True)


class RootValueObject(RootModel[T], Generic[T]):
    model_config = ConfigDict(frozen=True)
