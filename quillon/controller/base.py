"""
Controller Base Classes

Provides HttpContext, the optional BaseHttpController and BaseMiddleware
base classes, and the container tokens the framework binds under.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING
from dataclasses import dataclass, field
import logging

from . import results
from .results import HttpResult

if TYPE_CHECKING:
    from ..auth import Principal
    from ..di import Container
    from ..request import Request
    from ..response import Response


# Container tokens
CONTROLLER = "quillon:controller"
AUTH_PROVIDER = "quillon:auth_provider"
HTTP_CONTEXT = "quillon:http_context"


@dataclass
class HttpContext:
    """
    Per-request context.

    Created by the application for every request and never shared between
    requests. Controllers see it as ``self.http_context``; services can
    receive it by injecting ``HTTP_CONTEXT``.

    Attributes:
        request: The HTTP request
        response: The response the handler may write to directly
        user: Principal resolved by the auth provider (None without one)
        container: Request-scoped DI container
        items: Free-form per-request values
    """

    request: "Request"
    response: "Response"
    user: Optional["Principal"] = None
    container: Optional["Container"] = None
    items: Dict[str, Any] = field(default_factory=dict)
    auth_resolved: bool = field(default=False, repr=False)

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def method(self) -> str:
        return self.request.method


class BaseHttpController:
    """
    Optional base class for controllers.

    Adds ``http_context`` (set before each handler call) and helpers that
    build structured results:

        @GET("/:id")
        async def get(self, id: Annotated[str, request_param("id")]):
            order = await self.orders.find(id)
            if order is None:
                return self.not_found()
            return self.ok(order)
    """

    http_context: Optional[HttpContext] = None

    def ok(self, content: Any = None) -> HttpResult:
        return results.ok(content)

    def created(self, location: str, content: Any = None) -> HttpResult:
        return results.created(location, content)

    def json(self, content: Any, status: int = 200) -> HttpResult:
        return results.json(content, status)

    def bad_request(self, message: Optional[str] = None) -> HttpResult:
        return results.bad_request(message)

    def not_found(self) -> HttpResult:
        return results.not_found()

    def conflict(self) -> HttpResult:
        return results.conflict()

    def internal_server_error(self, error: Optional[BaseException] = None) -> HttpResult:
        if error is not None:
            logging.getLogger("quillon.pipeline").error(
                "%s reported an internal error: %s", type(self).__name__, error, exc_info=error
            )
        return results.internal_server_error()

    def redirect(self, uri: str, status: int = 302) -> HttpResult:
        return results.redirect(uri, status)

    def status_code(self, code: int) -> HttpResult:
        return results.status_code(code)


class BaseMiddleware:
    """
    Class-based middleware.

    Subclasses implement ``handler``. Used as a middleware reference on a
    controller or route, the class is resolved from the request container,
    so it can take constructor dependencies and gets a fresh instance per
    request.

    Example:
        class TraceMiddleware(BaseMiddleware):
            async def handler(self, request, ctx, next):
                self.bind("trace-id", request.header("x-trace-id"))
                return await next(request, ctx)
    """

    http_context: Optional[HttpContext] = None

    async def __call__(
        self,
        request: "Request",
        ctx: HttpContext,
        next: Callable[["Request", HttpContext], Awaitable["Response"]],
    ) -> "Response":
        self.http_context = ctx
        return await self.handler(request, ctx, next)

    async def handler(
        self,
        request: "Request",
        ctx: HttpContext,
        next: Callable[["Request", HttpContext], Awaitable["Response"]],
    ) -> "Response":
        raise NotImplementedError(f"{type(self).__name__} must implement handler()")

    def bind(self, token: Any, value: Any) -> None:
        """Bind ``value`` under ``token`` in the current request's container."""
        if self.http_context is None or self.http_context.container is None:
            raise RuntimeError("bind() is only available while handling a request")
        self.http_context.container.bind_constant(token, value)
