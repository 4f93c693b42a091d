from pydantic import BaseModel, ConfigDict


class Entity(BaseModel):
    """Mutable domain object with identity."""

    model_config = ConfigDict(validate_assignment=True)


class Aggregate(Entity):
    """Consistency boundary persisted and loaded as a whole."""
