from typing import Protocol


class Port(Protocol):
    """Marker base for capability interfaces implemented by infrastructure adapters."""
