"""
Core DI types and protocols.

Defines the fundamental contracts for the DI system.
"""

from typing import (
    Any,
    Callable,
    Coroutine,
    Type,
    Optional,
    Protocol,
    Dict,
    List,
    Tuple,
    TypeVar,
    runtime_checkable,
)
from dataclasses import dataclass, field
from contextvars import ContextVar
import logging

logger = logging.getLogger("quillon.di")

# Module-level cache: type -> "module.qualname" string
_type_key_cache: Dict[type, str] = {}

# Scopes that should cache instances
_CACHEABLE_SCOPES = frozenset(("singleton", "app", "request"))

# Cache keys currently being instantiated in this task
_resolution_stack: ContextVar[Tuple[str, ...]] = ContextVar("quillon_di_stack", default=())


T = TypeVar("T")


def token_to_key(token: Type | str) -> str:
    """Convert a type or string token to its registry key."""
    if isinstance(token, str):
        return token

    if isinstance(token, type):
        key = _type_key_cache.get(token)
        if key is None:
            key = f"{token.__module__}.{token.__qualname__}"
            _type_key_cache[token] = key
        return key

    # typing generics and other objects
    return str(token)


@dataclass(frozen=True, slots=True)
class ProviderMeta:
    """Compact provider metadata."""
    name: str
    token: str  # Type name or string key
    scope: str  # "singleton", "app", "request", "transient"
    tags: tuple[str, ...] = field(default_factory=tuple)
    module: str = ""
    qualname: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "token": self.token,
            "scope": self.scope,
            "tags": list(self.tags),
            "module": self.module,
            "qualname": self.qualname,
        }


class ResolveCtx:
    """Context handed to providers while they instantiate."""
    __slots__ = ("container", "trace")

    def __init__(self, container: "Container", trace: Tuple[str, ...] = ()):
        self.container = container
        self.trace = trace


@runtime_checkable
class Provider(Protocol):
    """
    Provider protocol - how to instantiate a dependency.

    All providers must implement this interface.
    """

    @property
    def meta(self) -> ProviderMeta:
        """Provider metadata."""
        ...

    async def instantiate(self, ctx: ResolveCtx) -> Any:
        """
        Instantiate the provider.

        Args:
            ctx: Resolution context with the resolving container
        """
        ...

    async def shutdown(self) -> None:
        """Release anything the provider holds."""
        ...


class Container:
    """
    DI Container - manages provider instances and scopes.

    A root container holds application bindings. ``create_request_scope()``
    derives a child for a single request: the child owns request-scoped
    instances and its own registrations, and falls back to the parent for
    everything else.
    """

    __slots__ = (
        "_providers",
        "_bindings",
        "_cache",
        "_scope",
        "_parent",
        "_finalizers",
    )

    def __init__(
        self,
        scope: str = "app",
        parent: Optional["Container"] = None,
    ):
        self._providers: Dict[str, Provider] = {}  # {cache_key: provider}
        self._bindings: Dict[str, List[Optional[str]]] = {}  # {token: [tag, ...]} in binding order
        self._cache: Dict[str, Any] = {}  # {cache_key: instance}
        self._scope = scope
        self._parent = parent
        self._finalizers: List[Callable[[], Coroutine]] = []  # LIFO cleanup

    @property
    def scope(self) -> str:
        return self._scope

    @property
    def parent(self) -> Optional["Container"]:
        return self._parent

    def register(self, provider: Provider, tag: Optional[str] = None):
        """
        Register a provider.

        Args:
            provider: Provider instance
            tag: Optional tag for disambiguation
        """
        meta = provider.meta
        token = meta.token
        key = self._make_cache_key(token, tag)

        if key in self._providers:
            existing = self._providers[key]
            # Idempotency: if same provider, ignore. If different, error.
            if existing == provider:
                return
            raise ValueError(
                f"Provider for {token} (tag={tag}) already registered: {existing.meta.name}"
            )

        self._providers[key] = provider
        self._bindings.setdefault(token, []).append(tag)
        logger.debug("Registered provider %s for %s (tag=%s)", meta.name, token, tag)

    def bind(
        self,
        interface: Type | str,
        implementation: Type,
        scope: str = "app",
        tag: Optional[str] = None,
    ):
        """
        Bind an interface (or string token) to an implementation class.

        Example:
            container.bind(UserRepository, SqlUserRepository)
            container.bind(CONTROLLER, OrderController, scope="request", tag="OrderController")
        """
        from .providers import ClassProvider

        provider = ClassProvider(implementation, scope=scope, token=interface)
        self.register(provider, tag=tag)

    def bind_constant(self, token: Type | str, value: Any, tag: Optional[str] = None):
        """Bind a pre-built value, shared by every resolution."""
        from .providers import ValueProvider

        provider = ValueProvider(
            value=value,
            token=token,
            name=f"{getattr(token, '__name__', token)}_constant",
        )
        self.register(provider, tag=tag)

    def bind_factory(
        self,
        token: Type | str,
        factory: Callable[..., Any],
        scope: str = "transient",
        tag: Optional[str] = None,
    ):
        """Bind a factory called with the resolving container."""
        from .providers import FactoryProvider

        self.register(FactoryProvider(factory, token=token, scope=scope), tag=tag)

    async def register_instance(
        self,
        token: Type[T] | str,
        instance: T,
        scope: str = "request",
        tag: Optional[str] = None,
    ):
        """
        Register a pre-instantiated object as a provider.

        Used for per-request objects created outside the container, such as
        the HTTP context.
        """
        from .providers import ValueProvider

        provider = ValueProvider(
            token=token,
            value=instance,
            scope=scope,
            name=f"{token.__name__ if hasattr(token, '__name__') else token}_instance",
        )
        self.register(provider, tag=tag)
        self._cache[self._make_cache_key(provider.meta.token, tag)] = instance

    def get_tagged(self, token: Type | str) -> List[Tuple[Optional[str], Provider]]:
        """
        Return ``(tag, provider)`` pairs bound under ``token``.

        Parent bindings come first, then this container's, each in the order
        they were bound.
        """
        token_key = token_to_key(token)
        pairs: List[Tuple[Optional[str], Provider]] = []
        if self._parent is not None:
            pairs.extend(self._parent.get_tagged(token_key))
        for tag in self._bindings.get(token_key, ()):
            pairs.append((tag, self._providers[self._make_cache_key(token_key, tag)]))
        return pairs

    def is_registered(self, token: Type[T] | str, tag: Optional[str] = None) -> bool:
        """Check if a provider is registered for the token."""
        return self._lookup_provider(token_to_key(token), tag) is not None

    async def resolve_async(
        self,
        token: Type[T] | str,
        *,
        tag: Optional[str] = None,
        optional: bool = False,
    ) -> T:
        """
        Async resolve (primary resolution path).

        Raises:
            ProviderNotFoundError: If provider not found and not optional
            DependencyCycleError: If the token is already being resolved
        """
        token_key = token_to_key(token)
        cache_key = self._make_cache_key(token_key, tag)

        # Fast path: check cache
        if cache_key in self._cache:
            return self._cache[cache_key]

        provider = self._lookup_provider(token_key, tag)

        if provider is None:
            if optional:
                return None
            self._raise_not_found(token_key, tag)

        # Scope Delegation: singleton/app -> parent
        if (
            self._parent is not None
            and provider.meta.scope in ("singleton", "app")
            and self._parent._lookup_provider(token_key, tag) is provider
        ):
            return await self._parent.resolve_async(token, tag=tag, optional=optional)

        trace = _resolution_stack.get()
        if cache_key in trace:
            from .errors import DependencyCycleError
            raise DependencyCycleError(list(trace) + [cache_key])

        reset_token = _resolution_stack.set(trace + (cache_key,))
        try:
            instance = await provider.instantiate(ResolveCtx(self, trace + (cache_key,)))
        finally:
            _resolution_stack.reset(reset_token)

        if provider.meta.scope in _CACHEABLE_SCOPES:
            self._cache[cache_key] = instance
            if hasattr(instance, "__aexit__") or hasattr(instance, "shutdown"):
                self._register_finalizer(instance)

        return instance

    def create_request_scope(self) -> "Container":
        """Create a request-scoped child container."""
        return Container(scope="request", parent=self)

    async def shutdown(self) -> None:
        """Run finalizers in LIFO order and drop cached instances."""
        # Fast path: request scope with nothing to clean up
        if self._scope == "request" and not self._finalizers and not self._cache:
            return

        for finalizer in reversed(self._finalizers):
            try:
                await finalizer()
            except Exception as e:
                logger.error("Error during finalizer: %s", e, exc_info=True)

        self._finalizers.clear()
        self._cache.clear()

    def _make_cache_key(self, token: str, tag: Optional[str]) -> str:
        """Create cache key from token and tag."""
        if tag:
            return f"{token}#{tag}"
        return token

    def _lookup_provider(
        self,
        token: str,
        tag: Optional[str],
    ) -> Optional[Provider]:
        """Lookup provider in current container or parent."""
        key = self._make_cache_key(token, tag)
        if key in self._providers:
            return self._providers[key]

        if self._parent is not None:
            return self._parent._lookup_provider(token, tag)

        return None

    def _register_finalizer(self, instance: Any) -> None:
        """Register finalizer for cleanup."""
        if hasattr(instance, "__aexit__"):
            self._finalizers.append(
                lambda: instance.__aexit__(None, None, None)
            )
        elif hasattr(instance, "shutdown"):
            self._finalizers.append(instance.shutdown)

    def _raise_not_found(self, token: str, tag: Optional[str]) -> None:
        """Raise ProviderNotFoundError with helpful diagnostics."""
        from .errors import ProviderNotFoundError

        candidates = []
        container: Optional[Container] = self
        while container is not None:
            candidates.extend(key for key in container._providers if token in key)
            container = container._parent

        raise ProviderNotFoundError(
            token=token,
            tag=tag,
            candidates=candidates,
        )
