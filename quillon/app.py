"""
ASGI application.

Bridges the ASGI protocol to Request/Response, creates the per-request
HTTP context and child container, and runs the application middleware
chain around the router. ExceptionMiddleware is always outermost.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional
import inspect
import logging

from .controller.base import HTTP_CONTEXT, HttpContext
from .di import Container
from .middleware import ErrorHandler, ExceptionMiddleware, Handler, Middleware, MiddlewareStack
from .request import ClientDisconnect, Request
from .response import Response
from .router import Router


class Application:
    """
    ASGI application around a Router.

    Example:
        app = Application(container)
        app.use(LoggingMiddleware())
        app.mount("/", router)
        app.run(port=8000)
    """

    def __init__(
        self,
        container: Optional[Container] = None,
        router: Optional[Router] = None,
        *,
        debug: bool = False,
    ):
        self.container = container if container is not None else Container(scope="app")
        self.router = router if router is not None else Router()
        self.debug = debug
        self.middleware_stack = MiddlewareStack()
        self.exception_middleware = ExceptionMiddleware(debug=debug)
        self.logger = logging.getLogger("quillon.app")
        self.state: dict = {}
        self._startup_hooks: List[Callable[[], Any]] = []
        self._shutdown_hooks: List[Callable[[], Any]] = []
        self._chain: Optional[Handler] = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def use(self, middleware: Middleware, priority: int = 50, name: Optional[str] = None) -> "Application":
        """Add application middleware, run for every request before routing."""
        self.middleware_stack.add(middleware, priority=priority, name=name)
        self._chain = None
        return self

    def mount(self, prefix: str, router: Router) -> "Application":
        self.router.mount(prefix, router)
        return self

    def add_error_handler(self, handler: ErrorHandler) -> "Application":
        """
        Register ``fn(exc, request, ctx)``, sync or async.

        Returning a Response handles the error; returning None passes it to
        the next handler and finally to the default error mapping.
        """
        self.exception_middleware.add_handler(handler)
        return self

    def on_startup(self, hook: Callable[[], Any]) -> Callable[[], Any]:
        self._startup_hooks.append(hook)
        return hook

    def on_shutdown(self, hook: Callable[[], Any]) -> Callable[[], Any]:
        self._shutdown_hooks.append(hook)
        return hook

    def routes(self) -> List[tuple]:
        """Flattened ``(method, path, route)`` table in dispatch order."""
        return self.router.routes()

    def run(self, host: str = "127.0.0.1", port: int = 8000, **kwargs: Any) -> None:
        """Serve the application with uvicorn."""
        import uvicorn

        self.logger.info("Starting server on http://%s:%d", host, port)
        uvicorn.run(self, host=host, port=port, **kwargs)

    # ------------------------------------------------------------------
    # ASGI entry point
    # ------------------------------------------------------------------

    async def __call__(self, scope: dict, receive: Callable, send: Callable):
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning("Unsupported ASGI scope type: %s", scope_type)
            if scope_type == "websocket":
                await send({"type": "websocket.close", "code": 1003})

    def _build_chain(self) -> Handler:
        async def _final_handler(request: Request, ctx: HttpContext) -> Response:
            response = await self.router.dispatch(request, ctx)
            if response is None:
                return Response.json(
                    {"error": {"code": "NOT_FOUND", "message": f"Cannot {request.method} {request.path}"}},
                    status=404,
                )
            return response

        inner = self.middleware_stack.build_handler(_final_handler)
        exception_middleware = self.exception_middleware

        async def _outer(request: Request, ctx: HttpContext) -> Response:
            return await exception_middleware(request, ctx, inner)

        return _outer

    async def handle_http(self, scope: dict, receive: Callable, send: Callable):
        if self._chain is None:
            self._chain = self._build_chain()

        request = Request(scope, receive, send)
        child = self.container.create_request_scope()
        ctx = HttpContext(request=request, response=Response(), container=child)
        await child.register_instance(HTTP_CONTEXT, ctx)

        try:
            try:
                response = await self._chain(request, ctx)
            except ClientDisconnect:
                self.logger.debug("Client disconnected: %s %s", request.method, request.path)
                return
            except Exception as e:
                self.logger.error("Critical error in request pipeline: %s", e, exc_info=True)
                response = Response.json({"error": "Internal server error"}, status=500)

            await response.send_asgi(send, head=request.method == "HEAD")
        finally:
            await child.shutdown()

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable):
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    await self._run_hooks(self._startup_hooks)
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error("Startup error: %s", e, exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    await self._run_hooks(self._shutdown_hooks)
                    await self.container.shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error("Shutdown error: %s", e, exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break

    async def _run_hooks(self, hooks: List[Callable[[], Any]]) -> None:
        for hook in hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result
