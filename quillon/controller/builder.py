"""
Route Builder

Turns the metadata store plus the controller bindings of a container into
a router. Routes are registered in controller binding order, then in
method declaration order, at ``root_path + controller path + route path``.

Every controller and middleware reference is checked before the container
is written to, and the table is assembled on a private router mounted under
the base path last, so a failing build binds and mounts nothing.
"""

from typing import Any, List, Optional, Sequence, TYPE_CHECKING
import logging

from ..auth import AuthContextResolver
from ..config import RoutingConfig
from ..faults import ControllerMetadataMissingError, NoControllersFoundError
from ..router import Router
from ..utils import join_paths
from .metadata import MetadataStore, metadata_store
from .pipeline import MiddlewareRef, RequestPipeline
from .registry import ControllerRegistry

if TYPE_CHECKING:
    from ..di import Container

logger = logging.getLogger("quillon.builder")


class RouteBuilder:
    """
    Builds the controller route table for a container.

    Args:
        container: Root DI container holding the controller bindings
        store: Metadata store (defaults to the process-wide store)
        routing_config: Supplies the root path every route is prefixed with
        auth_provider: AuthProvider instance or class, or None
        middleware: Global middleware run before controller middleware
    """

    def __init__(
        self,
        container: "Container",
        store: Optional[MetadataStore] = None,
        routing_config: Optional[RoutingConfig] = None,
        auth_provider: Any = None,
        middleware: Sequence[Any] = (),
    ):
        self.container = container
        self.store = store if store is not None else metadata_store
        self.routing_config = routing_config or RoutingConfig()
        self.auth_provider = auth_provider
        self.middleware = tuple(middleware)
        self.pipelines: List[RequestPipeline] = []

    def build(
        self,
        base_path: str = "/",
        custom_router: Optional[Router] = None,
        force_controllers: bool = True,
    ) -> Router:
        """
        Assemble and mount the route table.

        Raises:
            NoControllersFoundError: No controller is bound and
                ``force_controllers`` is True
            ControllerMetadataMissingError: A bound controller was never
                declared with ``@controller``
            DIError: A controller, middleware or auth provider binding is
                invalid
        """
        router = custom_router if custom_router is not None else Router()

        registry = ControllerRegistry(self.container, self.store)
        pending = registry.declared_unbound()
        controllers = registry.bound() + pending
        if not controllers:
            if force_controllers:
                raise NoControllersFoundError()
            logger.warning("No controllers found; route table is empty")
            return router

        # Validate every controller and middleware reference before the
        # container is written to
        global_refs = self._compile_middleware(self.middleware)
        planned = []
        for identifier, cls in controllers:
            controller_meta = self.store.get_controller(identifier, target=cls)
            if controller_meta is None:
                raise ControllerMetadataMissingError(identifier)

            controller_refs = self._compile_middleware(controller_meta.middleware)
            for route in self.store.get_routes(identifier, target=controller_meta.target):
                refs = global_refs + controller_refs + self._compile_middleware(route.middleware)
                planned.append((identifier, controller_meta, route, refs))

        for identifier, cls in pending:
            registry.bind(cls, identifier)
        if pending:
            logger.debug("Auto-bound controllers: %s", ", ".join(identifier for identifier, _ in pending))

        resolver = AuthContextResolver(self.auth_provider)
        resolver.install(self.container)

        assembled = Router()
        pipelines: List[RequestPipeline] = []

        for identifier, controller_meta, route, refs in planned:
            for ref in refs:
                ref.install(self.container)

            full_path = join_paths(
                self.routing_config.root_path,
                controller_meta.base_path,
                route.path,
            )
            pipeline = RequestPipeline(
                controller_meta,
                route,
                middleware=refs,
                auth_resolver=resolver,
            )
            assembled.add_route(
                route.verb.value,
                full_path,
                pipeline,
                name=pipeline.name,
                metadata={"controller": identifier, "method": route.method_name},
            )
            pipelines.append(pipeline)
            logger.debug("Mapped %s %s -> %s", route.verb.value, full_path, pipeline.name)

        router.mount(base_path, assembled)
        self.pipelines = pipelines

        logger.info(
            "Mounted %d route(s) from %d controller(s) at %s",
            len(pipelines), len(controllers), base_path,
        )
        return router

    def _compile_middleware(self, refs: Sequence[Any]) -> List[MiddlewareRef]:
        return [MiddlewareRef.compile(ref, self.container) for ref in refs]


def build_router(
    container: "Container",
    base_path: str = "/",
    routing_config: Optional[RoutingConfig] = None,
    custom_router: Optional[Router] = None,
    auth_provider: Any = None,
    force_controllers: bool = True,
    store: Optional[MetadataStore] = None,
    middleware: Sequence[Any] = (),
) -> Router:
    """Functional form of ``RouteBuilder(...).build(...)``."""
    builder = RouteBuilder(
        container,
        store=store,
        routing_config=routing_config,
        auth_provider=auth_provider,
        middleware=middleware,
    )
    return builder.build(
        base_path=base_path,
        custom_router=custom_router,
        force_controllers=force_controllers,
    )
