"""
Middleware system - composable async middleware.

A middleware is ``async mw(request, ctx, next) -> Response``. Calling
``await next(request, ctx)`` continues the chain; returning without calling
it short-circuits the request.
"""

from __future__ import annotations

from typing import Callable, Awaitable, Optional, Any, List, TYPE_CHECKING
from dataclasses import dataclass
import inspect
import time
import traceback
import logging

from .request import Request, ClientDisconnect
from .response import Response
from .faults import Fault, FaultDomain, HandlerExecutionError

if TYPE_CHECKING:
    from .controller.base import HttpContext

Handler = Callable[[Request, "HttpContext"], Awaitable[Response]]
Middleware = Callable[[Request, "HttpContext", Handler], Awaitable[Response]]
ErrorHandler = Callable[[BaseException, Request, "HttpContext"], Any]


@dataclass
class MiddlewareDescriptor:
    """Descriptor for middleware registration."""
    middleware: Middleware
    priority: int
    name: str


class MiddlewareStack:
    """
    Ordered middleware stack.

    Middleware run in priority order, then in the order they were added.
    """

    def __init__(self):
        self.middlewares: List[MiddlewareDescriptor] = []

    def add(
        self,
        middleware: Middleware,
        priority: int = 50,
        name: Optional[str] = None,
    ):
        if name is None:
            name = getattr(middleware, "__name__", type(middleware).__name__)
        self.middlewares.append(
            MiddlewareDescriptor(middleware=middleware, priority=priority, name=name)
        )

    def __len__(self) -> int:
        return len(self.middlewares)

    def build_handler(self, final_handler: Handler) -> Handler:
        """Build middleware chain wrapping the final handler."""
        ordered = sorted(self.middlewares, key=lambda desc: desc.priority)

        handler = final_handler
        # Wrap in reverse order so first middleware is outermost
        for desc in reversed(ordered):
            handler = self._wrap_middleware(desc.middleware, handler)
        return handler

    def _wrap_middleware(self, middleware: Middleware, next_handler: Handler) -> Handler:
        async def wrapped(request: Request, ctx: HttpContext) -> Response:
            return await middleware(request, ctx, next_handler)
        return wrapped


# Status codes for faults whose code alone decides the response
_CODE_STATUS = {
    "PAYLOAD_TOO_LARGE": 413,
    "CLIENT_DISCONNECT": 499,
}

_DOMAIN_STATUS = {
    FaultDomain.ROUTING: 404,
    FaultDomain.SECURITY: 403,
    FaultDomain.IO: 400,
    FaultDomain.CONFIG: 500,
    FaultDomain.BUILD: 500,
    FaultDomain.DI: 500,
    FaultDomain.FLOW: 500,
    FaultDomain.SYSTEM: 500,
}


def fault_status(fault: Fault) -> int:
    """HTTP status for a fault, derived from its code then its domain."""
    code = fault.code or ""
    if code in _CODE_STATUS:
        return _CODE_STATUS[code]
    if "NOT_FOUND" in code or "MISSING" in code:
        return 404
    if "VALIDATION" in code or "INVALID" in code:
        return 400
    return _DOMAIN_STATUS.get(fault.domain, 500)


class ExceptionMiddleware:
    """
    Catches exceptions and converts them to error responses.

    Registered error handlers (``async fn(exc, request, ctx)``) are tried
    first, in registration order; the first one returning a Response wins.
    Otherwise faults map to JSON error bodies by code and domain, and any
    other exception becomes a generic 500.
    """

    def __init__(self, debug: bool = False, handlers: Optional[List[ErrorHandler]] = None):
        self.debug = debug
        self.handlers: List[ErrorHandler] = handlers if handlers is not None else []
        self.logger = logging.getLogger("quillon.exceptions")

    def add_handler(self, handler: ErrorHandler) -> None:
        self.handlers.append(handler)

    async def __call__(self, request: Request, ctx: HttpContext, next: Handler) -> Response:
        try:
            return await next(request, ctx)
        except ClientDisconnect:
            raise
        except Exception as exc:
            return await self.handle(exc, request, ctx)

    async def handle(self, exc: BaseException, request: Request, ctx: HttpContext) -> Response:
        for handler in self.handlers:
            try:
                result = handler(exc, request, ctx)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as handler_exc:
                self.logger.error(
                    "Error handler %r failed: %s", handler, handler_exc, exc_info=True
                )
                continue
            if result is not None:
                return result

        return self.default_response(exc)

    def default_response(self, exc: BaseException) -> Response:
        error = exc
        if isinstance(exc, HandlerExecutionError):
            error = exc.original

        if isinstance(error, ValueError):
            # Client error - 400
            self.logger.warning("ValueError: %s", error)
            return Response.json({"error": str(error)}, status=400)

        if isinstance(error, PermissionError):
            self.logger.warning("PermissionError: %s", error)
            return Response.json({"error": "Forbidden"}, status=403)

        if isinstance(error, Fault):
            status = fault_status(error)
            message = error.message if (error.public or self.debug) else "Internal server error"

            if status >= 500:
                self.logger.error("Fault %s: %s", error.code, error.message)
            else:
                self.logger.warning("Fault %s: %s", error.code, error.message)

            return Response.json(
                {
                    "error": {
                        "code": error.code,
                        "message": message,
                        "domain": error.domain.value,
                    }
                },
                status=status,
            )

        # Internal error - 500
        self.logger.error("Unhandled exception: %s", error, exc_info=error)

        error_data = {"error": "Internal server error"}
        if self.debug:
            error_data["detail"] = str(error)
            error_data["traceback"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        return Response.json(error_data, status=500)


class LoggingMiddleware:
    """Logs request/response with timing."""

    def __init__(self, slow_threshold_ms: float = 1000.0):
        self.logger = logging.getLogger("quillon.requests")
        self.slow_threshold_ms = slow_threshold_ms

    async def __call__(self, request: Request, ctx: HttpContext, next: Handler) -> Response:
        if not self.logger.isEnabledFor(logging.INFO):
            return await next(request, ctx)

        start = time.monotonic()
        response = await next(request, ctx)
        elapsed_ms = (time.monotonic() - start) * 1000.0

        self.logger.info(
            "%s %s - %d (%.1fms)",
            request.method, request.path, response.status, elapsed_ms,
        )

        if elapsed_ms > self.slow_threshold_ms:
            self.logger.warning(
                "Slow request: %s %s took %.1fms",
                request.method, request.path, elapsed_ms,
            )

        return response
