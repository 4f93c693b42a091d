from logvault.util.di.base import Provider
from logvault.util.di.scope import Scope

__all__ = ["Provider", "Scope"]
