from dataclasses import dataclass
from typing import Any, dataclass_transform


@dataclass_transform()
class Service:
    """Base class for domain services.

    Subclasses become dataclasses whose fields are their collaborators, which
    is what the DI container injects.
    """

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        dataclass(cls)
