"""Base provider shared by all LogVault DI providers."""

from dishka import Provider as DishkaProvider

from logvault.util.di.scope import Scope


class Provider(DishkaProvider):
    """Dishka provider defaulting to the UOW scope.

    Providers that hold process-wide resources declare ``scope=Scope.APP``
    on the individual ``@provide`` methods.
    """

    scope = Scope.UOW
