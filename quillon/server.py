"""
Server - builds an Application from declared controllers.

    container = Container()
    server = Server(container, auth_provider=CustomAuthProvider)
    server.set_config(lambda app: app.use(LoggingMiddleware()))
    app = server.build()
"""

from typing import Any, Callable, Optional, Sequence
import logging

from .app import Application
from .config import RoutingConfig, ServerConfig
from .controller.builder import RouteBuilder
from .controller.metadata import MetadataStore
from .di import Container
from .router import Router

ConfigureFn = Callable[[Application], Any]


class Server:
    """
    Build entry point.

    Args:
        container: Root DI container; controllers declared with
            ``@controller`` are bound into it on build
        custom_router: Router to mount the controller routes on
        routing_config: Root path for every controller route
        custom_app: Application to configure instead of a new one (its
            container is replaced by ``container``)
        auth_provider: AuthProvider instance or class
        force_controllers: Fail the build when no controller is bound
        config: Server settings (base path, debug, host, port)
        store: Metadata store (defaults to the process-wide store)
        middleware: Middleware run before controller middleware on every
            controller route
    """

    def __init__(
        self,
        container: Container,
        custom_router: Optional[Router] = None,
        routing_config: Optional[RoutingConfig] = None,
        custom_app: Optional[Application] = None,
        auth_provider: Any = None,
        force_controllers: bool = True,
        config: Optional[ServerConfig] = None,
        store: Optional[MetadataStore] = None,
        middleware: Sequence[Any] = (),
    ):
        self.container = container
        self.config = config or ServerConfig()
        self.custom_router = custom_router
        self.routing_config = routing_config or self.config.routing
        self.custom_app = custom_app
        self.auth_provider = auth_provider
        self.force_controllers = force_controllers and self.config.force_controllers
        self.store = store
        self.middleware = tuple(middleware)
        self.logger = logging.getLogger("quillon.server")
        self._config_fn: Optional[ConfigureFn] = None
        self._error_config_fn: Optional[ConfigureFn] = None
        self.builder: Optional[RouteBuilder] = None

    def set_config(self, fn: ConfigureFn) -> "Server":
        """Register ``fn(app)``, called before controller routes are mounted."""
        self._config_fn = fn
        return self

    def set_error_config(self, fn: ConfigureFn) -> "Server":
        """Register ``fn(app)``, called after controller routes are mounted."""
        self._error_config_fn = fn
        return self

    def build(self) -> Application:
        """
        Build the application.

        Raises:
            NoControllersFoundError: See RouteBuilder.build
            ControllerMetadataMissingError: See RouteBuilder.build
        """
        app = self.custom_app
        if app is None:
            app = Application(self.container, debug=self.config.debug)
        else:
            app.container = self.container

        if self._config_fn is not None:
            self._config_fn(app)

        self.builder = RouteBuilder(
            self.container,
            store=self.store,
            routing_config=self.routing_config,
            auth_provider=self.auth_provider,
            middleware=self.middleware,
        )
        router = self.builder.build(
            base_path=self.config.base_path,
            custom_router=self.custom_router,
            force_controllers=self.force_controllers,
        )
        if router is not app.router:
            app.mount("/", router)

        if self._error_config_fn is not None:
            self._error_config_fn(app)

        self.logger.info(
            "Server built: %d route(s), base path %s, root path %s",
            len(self.builder.pipelines), self.config.base_path, self.routing_config.root_path,
        )
        return app
