"""
Server build sequence: hooks, configuration and custom routers/apps.
"""

import pytest

from quillon import Application, Server, ServerConfig
from quillon.config import RoutingConfig
from quillon.controller import GET, controller
from quillon.di import Container
from quillon.faults import NoControllersFoundError
from quillon.middleware import LoggingMiddleware
from quillon.response import Response
from quillon.router import Router
from tests.conftest import client_for


def declare_ping_controller():
    @controller("/ping")
    class PingController:
        @GET("/")
        async def ping(self):
            return "pong"

    return PingController


class TestServerBuild:

    def test_hooks_run_around_route_mounting(self):
        declare_ping_controller()
        events = []

        def configure(app):
            events.append(("config", len(app.routes())))

        def configure_errors(app):
            events.append(("errors", len(app.routes())))

        server = Server(Container())
        server.set_config(configure).set_error_config(configure_errors)
        app = server.build()

        assert isinstance(app, Application)
        assert events == [("config", 0), ("errors", 1)]

    def test_no_controllers_fails_build(self):
        with pytest.raises(NoControllersFoundError):
            Server(Container()).build()

    def test_no_controllers_allowed(self):
        app = Server(Container(), force_controllers=False).build()
        assert app.routes() == []

    def test_force_controllers_from_config(self):
        app = Server(Container(), config=ServerConfig(force_controllers=False)).build()
        assert app.routes() == []

    def test_paths_from_config_and_routing_config(self):
        declare_ping_controller()
        app = Server(
            Container(),
            routing_config=RoutingConfig(root_path="/api"),
            config=ServerConfig(base_path="/v1"),
        ).build()
        assert [(m, p) for m, p, _ in app.routes()] == [("GET", "/v1/api/ping/")]

    def test_custom_router_and_app(self):
        declare_ping_controller()
        container = Container()
        custom_router = Router()

        @custom_router.route("GET", "/health")
        async def health(request, ctx):
            return Response.text("healthy")

        custom_app = Application(debug=True)
        app = Server(container, custom_router=custom_router, custom_app=custom_app).build()

        assert app is custom_app
        assert app.container is container
        assert [(m, p) for m, p, _ in app.routes()] == [("GET", "/health"), ("GET", "/ping/")]

    @pytest.mark.asyncio
    async def test_config_hook_middleware_wraps_routes(self, caplog):
        import logging

        declare_ping_controller()
        server = Server(Container())
        server.set_config(lambda app: app.use(LoggingMiddleware()))
        app = server.build()

        with caplog.at_level(logging.INFO, logger="quillon.requests"):
            async with client_for(app) as client:
                r = await client.get("/ping/")

        assert r.text == "pong"
        assert "GET /ping/ - 200" in caplog.text

    @pytest.mark.asyncio
    async def test_lifespan_hooks(self):
        declare_ping_controller()
        app = Server(Container()).build()
        events = []

        app.on_startup(lambda: events.append("startup"))

        @app.on_shutdown
        async def stop():
            events.append("shutdown")

        messages = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent = []

        async def receive():
            return messages.pop(0)

        async def send(message):
            sent.append(message["type"])

        await app({"type": "lifespan"}, receive, send)
        assert events == ["startup", "shutdown"]
        assert sent == ["lifespan.startup.complete", "lifespan.shutdown.complete"]
