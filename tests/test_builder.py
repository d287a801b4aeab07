"""
Route builder: binding, ordering, mounting and build-time failures.
"""

from typing import Annotated

import pytest

from quillon.config import RoutingConfig
from quillon.controller import (
    AUTH_PROVIDER,
    CONTROLLER,
    GET,
    POST,
    BaseMiddleware,
    ControllerRegistry,
    RouteBuilder,
    build_router,
    controller,
    request_param,
)
from quillon.di import Container, ProviderNotFoundError
from quillon.faults import (
    NO_CONTROLLERS_FOUND,
    ControllerMetadataMissingError,
    NoControllersFoundError,
)
from quillon.router import Router


def route_table(router: Router):
    return [(method, path) for method, path, _ in router.routes()]


class TestBuildFailures:

    def test_no_controllers_raises(self):
        with pytest.raises(NoControllersFoundError) as exc_info:
            build_router(Container())
        assert exc_info.value.message == NO_CONTROLLERS_FOUND

    def test_no_controllers_allowed_yields_empty_router(self):
        custom = Router()
        router = build_router(Container(), custom_router=custom, force_controllers=False)
        assert router is custom
        assert len(router) == 0

    def test_bound_class_without_metadata_raises(self):
        class Undecorated:
            pass

        container = Container()
        container.bind(CONTROLLER, Undecorated, scope="request", tag="Undecorated")
        with pytest.raises(ControllerMetadataMissingError) as exc_info:
            build_router(container)
        assert exc_info.value.identifier == "Undecorated"

    def test_unknown_middleware_token_aborts_build(self):
        @controller("/x", "no-such-middleware")
        class XController:
            @GET("/")
            async def index(self):
                return "x"

        custom = Router()
        with pytest.raises(ProviderNotFoundError):
            build_router(Container(), custom_router=custom)
        assert len(custom) == 0

    def test_failed_build_leaves_container_untouched(self):
        class Audit(BaseMiddleware):
            async def handler(self, request, ctx, next):
                return await next(request, ctx)

        class Provider:
            async def get_user(self, request, response):
                return None

        @controller("/ok", Audit)
        class OkController:
            @GET("/")
            async def index(self):
                return "ok"

        class Undecorated:
            pass

        container = Container()
        container.bind(CONTROLLER, Undecorated, scope="request", tag="Undecorated")

        with pytest.raises(ControllerMetadataMissingError):
            build_router(container, auth_provider=Provider)

        assert ControllerRegistry(container).identifiers() == ["Undecorated"]
        assert not container.is_registered(Audit)
        assert not container.is_registered(AUTH_PROVIDER)


class TestRouteAssembly:

    def test_paths_compose_root_controller_and_route(self):
        @controller("/order")
        class OrderController:
            @GET("/")
            async def list_orders(self):
                return []

            @GET("/:id")
            async def get_order(self, id: Annotated[str, request_param("id")]):
                return id

        router = build_router(
            Container(),
            base_path="/",
            routing_config=RoutingConfig(root_path="/api"),
        )
        assert route_table(router) == [("GET", "/api/order/"), ("GET", "/api/order/:id")]

    def test_base_path_mounts_assembled_router(self):
        @controller("/order")
        class OrderController:
            @GET("/")
            async def list_orders(self):
                return []

        router = build_router(Container(), base_path="/v1")
        assert route_table(router) == [("GET", "/v1/order/")]

    def test_registration_follows_binding_then_declaration_order(self):
        @controller("/a")
        class AController:
            @GET("/x")
            async def x(self):
                return "x"

            @GET("/y")
            async def y(self):
                return "y"

        @controller("/b")
        class BController:
            @POST("/z")
            async def z(self):
                return "z"

        container = Container()
        registry = ControllerRegistry(container)
        registry.bind(AController)
        registry.bind(BController)

        router = build_router(container)
        assert route_table(router) == [("GET", "/a/x"), ("GET", "/a/y"), ("POST", "/b/z")]

    def test_explicit_binding_order_is_respected(self):
        @controller("/a")
        class AController:
            @GET("/")
            async def a(self):
                return "a"

        @controller("/b")
        class BController:
            @GET("/")
            async def b(self):
                return "b"

        container = Container()
        registry = ControllerRegistry(container)
        registry.bind(BController)
        registry.bind(AController)

        router = build_router(container)
        assert route_table(router) == [("GET", "/b/"), ("GET", "/a/")]

    def test_auto_binding_starts_with_latest_declaration(self):
        @controller("/a")
        class AController:
            @GET("/")
            async def a(self):
                return "a"

        @controller("/b")
        class BController:
            @GET("/")
            async def b(self):
                return "b"

        container = Container()
        router = build_router(container)
        assert route_table(router) == [("GET", "/b/"), ("GET", "/a/")]
        assert ControllerRegistry(container).identifiers() == ["BController", "AController"]

    def test_declared_controllers_are_bound_in_request_scope(self):
        @controller("/a")
        class AController:
            @GET("/")
            async def a(self):
                return "a"

        container = Container()
        builder = RouteBuilder(container)
        builder.build()

        assert ControllerRegistry(container).identifiers() == ["AController"]
        provider = container.get_tagged(CONTROLLER)[0][1]
        assert provider.meta.scope == "request"
        assert [p.name for p in builder.pipelines] == ["AController.a"]

    def test_same_class_declared_twice_duplicates_routes(self):
        class Twice:
            @GET("/")
            async def index(self):
                return "twice"

        controller("/t")(Twice)
        controller("/t")(Twice)

        router = build_router(Container())
        assert route_table(router) == [("GET", "/t/"), ("GET", "/t/")]

    def test_identifier_clash_keeps_latest_declaration(self, caplog):
        def declare(label):
            @controller(f"/{label}")
            class SameName:
                @GET("/")
                async def index(self):
                    return label
            return SameName

        declare("first")
        second = declare("second")

        container = Container()
        router = build_router(container)
        assert route_table(router) == [("GET", "/second/")]
        assert dict(ControllerRegistry(container).bound()) == {"SameName": second}
        assert "already bound" in caplog.text

    def test_middleware_subclass_is_bound_into_container(self):
        class Tracing(BaseMiddleware):
            async def handler(self, request, ctx, next):
                return await next(request, ctx)

        @controller("/m", Tracing)
        class MController:
            @GET("/")
            async def index(self):
                return "m"

        container = Container()
        build_router(container)
        assert container.is_registered(Tracing)

    def test_rebuild_after_reset_matches_fresh_build(self):
        from quillon.controller import clean_up_metadata

        def declare():
            @controller("/a")
            class AController:
                @GET("/")
                async def a(self):
                    return "a"

        declare()
        first = route_table(build_router(Container()))
        clean_up_metadata()
        declare()
        second = route_table(build_router(Container()))
        assert first == second == [("GET", "/a/")]
