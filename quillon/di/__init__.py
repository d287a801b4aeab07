"""
Quillon DI - scoped dependency injection.

Controllers, auth providers and middleware are resolved from a Container.
Each request gets a child scope so request-scoped controllers are built
fresh while singletons are shared.
"""

from .core import (
    Container,
    Provider,
    ProviderMeta,
    ResolveCtx,
    token_to_key,
)
from .providers import (
    ClassProvider,
    FactoryProvider,
    ValueProvider,
)
from .decorators import Inject, inject
from .errors import (
    DIError,
    ProviderNotFoundError,
    DependencyCycleError,
)

__all__ = [
    "Container",
    "Provider",
    "ProviderMeta",
    "ResolveCtx",
    "token_to_key",
    "ClassProvider",
    "FactoryProvider",
    "ValueProvider",
    "Inject",
    "inject",
    "DIError",
    "ProviderNotFoundError",
    "DependencyCycleError",
]
