"""Custom Dishka scopes for LogVault."""

from dishka import BaseScope, new_scope


class Scope(BaseScope):  # type: ignore[misc]  # BaseScope is designed to be subclassed
    """LogVault dependency injection scopes.

    Hierarchy: APP -> UOW

    - APP: Process lifetime (singletons: config, HTTP client, stores, engine)
    - UOW: Unit of Work (one task delivery, one schedule tick, one CLI command)
    """

    APP = new_scope("APP")
    UOW = new_scope("UOW")
