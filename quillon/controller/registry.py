"""
Controller Registry

Controllers live in the DI container under the ``CONTROLLER`` token, one
binding per controller, tagged with the controller identifier. Binding
order is the order routes are registered and reported in.
"""

from typing import Any, List, Optional, Tuple, TYPE_CHECKING
import logging

from .base import CONTROLLER
from .metadata import MetadataStore, metadata_store

if TYPE_CHECKING:
    from ..di import Container

logger = logging.getLogger("quillon.controller.registry")


def _provider_class(provider: Any) -> Optional[type]:
    cls = getattr(provider, "cls", None)
    if cls is None and hasattr(provider, "value"):
        cls = type(provider.value)
    return cls


class ControllerRegistry:
    """View of the controller bindings of a container."""

    def __init__(self, container: "Container", store: Optional[MetadataStore] = None):
        self.container = container
        self.store = store if store is not None else metadata_store

    def bind(self, cls: type, identifier: Optional[str] = None) -> str:
        """Bind ``cls`` as a request-scoped controller; returns its identifier."""
        identifier = identifier or cls.__name__
        self.container.bind(CONTROLLER, cls, scope="request", tag=identifier)
        logger.debug("Controller %s bound", identifier)
        return identifier

    def is_bound(self, identifier: str) -> bool:
        return self.container.is_registered(CONTROLLER, tag=identifier)

    def declared_unbound(self) -> List[Tuple[str, type]]:
        """
        Declared controllers that are not bound yet, in the order
        the route builder binds them: most recently declared first.

        A declared class whose identifier is already taken by a different
        class is skipped with a warning. Nothing is bound.
        """
        bound_classes = dict(self.bound())
        pending: List[Tuple[str, type]] = []
        for meta in reversed(self.store.get_controllers()):
            if meta.target is None:
                continue
            existing = bound_classes.get(meta.identifier)
            if existing is not None:
                if existing is not meta.target:
                    logger.warning(
                        "Controller identifier %r already bound to %s.%s; skipping %s.%s",
                        meta.identifier,
                        existing.__module__, existing.__qualname__,
                        meta.target.__module__, meta.target.__qualname__,
                    )
                continue
            bound_classes[meta.identifier] = meta.target
            pending.append((meta.identifier, meta.target))
        return pending

    def bound(self) -> List[Tuple[str, Optional[type]]]:
        """``(identifier, class)`` for each controller binding, in binding order."""
        return [
            (tag, _provider_class(provider))
            for tag, provider in self.container.get_tagged(CONTROLLER)
            if tag is not None
        ]

    def identifiers(self) -> List[str]:
        return [identifier for identifier, _ in self.bound()]

    def __len__(self) -> int:
        return len(self.bound())
