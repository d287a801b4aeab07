"""
Request Pipeline

Executes one controller route for one request:

1. resolve the Principal (once per request)
2. resolve a fresh controller from the request-scoped container
3. attach the HTTP context to the controller
4. run global, controller and route middleware in that order
5. bind handler arguments from their parameter markers
6. invoke the handler
7. coerce its result into a response

Errors that are not faults are wrapped in HandlerExecutionError and
re-raised for the application's error path.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TYPE_CHECKING
from enum import Enum
import inspect
import logging

import orjson

from ..faults import Fault, HandlerExecutionError, ParameterBindingError
from ..request import InvalidJSON, Request
from ..response import Response
from ..router import NEXT
from .base import CONTROLLER, BaseMiddleware, HttpContext
from .metadata import ControllerMetadata, ParameterKind, ParameterMetadata, RouteMetadata
from .results import HttpResult

if TYPE_CHECKING:
    from ..auth import AuthContextResolver
    from ..di import Container

logger = logging.getLogger("quillon.pipeline")

Handler = Callable[[Request, HttpContext], Awaitable[Any]]

_MISSING = object()


class ResultKind(Enum):
    """How a handler's return value becomes a response."""
    RAW_HANDLED = "raw_handled"   # handler wrote to ctx.response itself
    STRUCTURED = "structured"     # HttpResult or Response
    PLAIN = "plain"               # any other value, sent with status 200
    EMPTY = "empty"               # None, sent as 204


def classify_result(result: Any, ctx: HttpContext) -> ResultKind:
    if ctx.response.committed or result is ctx.response:
        return ResultKind.RAW_HANDLED
    if isinstance(result, (HttpResult, Response)):
        return ResultKind.STRUCTURED
    if result is None:
        return ResultKind.EMPTY
    return ResultKind.PLAIN


class Continuation:
    """
    The ``next`` argument handed to handlers.

    ``await next()`` passes the request on to the following matching route;
    ``await next(exc)`` sends ``exc`` to the error path instead.
    """

    __slots__ = ("called", "error")

    def __init__(self):
        self.called = False
        self.error: Optional[BaseException] = None

    async def __call__(self, exc: Optional[BaseException] = None) -> None:
        self.called = True
        if exc is not None:
            self.error = exc


# ============================================================================
# Middleware references
# ============================================================================

class MiddlewareRef:
    """
    A middleware declared on a controller or route.

    Either used directly (an async callable) or resolved per request from
    the request container (a BaseMiddleware subclass or any bound token).
    """

    __slots__ = ("ref", "from_container")

    def __init__(self, ref: Any, from_container: bool):
        self.ref = ref
        self.from_container = from_container

    @classmethod
    def compile(cls, ref: Any, container: "Container") -> "MiddlewareRef":
        """
        Classify ``ref`` at build time. The container is only read;
        ``install`` adds the bindings a BaseMiddleware subclass needs.

        Raises:
            ProviderNotFoundError: ``ref`` is neither callable nor bound
        """
        if inspect.isclass(ref) and issubclass(ref, BaseMiddleware):
            return cls(ref, True)

        if container.is_registered(ref):
            return cls(ref, True)

        if callable(ref) and not isinstance(ref, str):
            return cls(ref, False)

        from ..di import ProviderNotFoundError
        raise ProviderNotFoundError(token=str(ref))

    def install(self, container: "Container") -> None:
        """Bind a BaseMiddleware subclass in request scope under its own class."""
        ref = self.ref
        if inspect.isclass(ref) and issubclass(ref, BaseMiddleware) and not container.is_registered(ref):
            container.bind(ref, ref, scope="request")

    async def resolve(self, ctx: HttpContext) -> Callable[..., Awaitable[Response]]:
        if self.from_container:
            return await ctx.container.resolve_async(self.ref)
        return self.ref

    @property
    def name(self) -> str:
        return getattr(self.ref, "__name__", type(self.ref).__name__)


def _chain(middleware: Sequence[Callable[..., Awaitable[Any]]], final: Handler) -> Handler:
    handler = final
    # Wrap in reverse order so first middleware is outermost
    for mw in reversed(middleware):
        handler = _wrap(mw, handler)
    return handler


def _wrap(middleware: Callable[..., Awaitable[Any]], next_handler: Handler) -> Handler:
    async def wrapped(request: Request, ctx: HttpContext) -> Any:
        return await middleware(request, ctx, next_handler)
    return wrapped


# ============================================================================
# Pipeline
# ============================================================================

class RequestPipeline:
    """
    Router handler for one controller route.

    Built once per route by the RouteBuilder and called for every request
    that matches it.
    """

    def __init__(
        self,
        controller: ControllerMetadata,
        route: RouteMetadata,
        middleware: Sequence[MiddlewareRef] = (),
        auth_resolver: Optional["AuthContextResolver"] = None,
    ):
        self.controller = controller
        self.route = route
        self.middleware = list(middleware)
        self.auth_resolver = auth_resolver
        self._signature = self._handler_signature()

    @property
    def name(self) -> str:
        return f"{self.controller.identifier}.{self.route.method_name}"

    def _handler_signature(self) -> List[inspect.Parameter]:
        """Handler parameters after ``self``, positional-capable only."""
        target = self.controller.target
        func = getattr(target, self.route.method_name, None) if target is not None else None
        if func is None:
            return []
        params = list(inspect.signature(func).parameters.values())[1:]
        return [
            p for p in params
            if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        ]

    async def __call__(self, request: Request, ctx: HttpContext) -> Any:
        stage = "auth"
        try:
            if self.auth_resolver is not None:
                await self.auth_resolver.resolve(ctx)

            stage = "controller"
            instance = await ctx.container.resolve_async(CONTROLLER, tag=self.controller.identifier)

            try:
                instance.http_context = ctx
            except AttributeError:
                logger.debug("Cannot attach http_context to %s", self.controller.identifier)

            stage = "middleware"
            resolved = [await ref.resolve(ctx) for ref in self.middleware]

            async def invoke(request: Request, ctx: HttpContext) -> Any:
                return await self._invoke(instance, request, ctx)

            result = await _chain(resolved, invoke)(request, ctx)
            if result is None and ctx.response.committed:
                # middleware wrote the response itself
                return ctx.response
            return result

        except Fault:
            raise
        except Exception as exc:
            logger.error("%s failed during %s: %s", self.name, stage, exc, exc_info=True)
            raise HandlerExecutionError(
                exc,
                controller=self.controller.identifier,
                method=self.route.method_name,
                stage=stage,
            ) from exc

    async def _invoke(self, instance: Any, request: Request, ctx: HttpContext) -> Any:
        continuation = Continuation()
        kwargs = await self.bind_arguments(request, ctx, continuation)

        try:
            method = getattr(instance, self.route.method_name)
            result = method(**kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Fault:
            raise
        except Exception as exc:
            logger.error("Handler %s raised: %s", self.name, exc, exc_info=True)
            raise HandlerExecutionError(
                exc,
                controller=self.controller.identifier,
                method=self.route.method_name,
            ) from exc

        if continuation.error is not None:
            error = continuation.error
            if isinstance(error, Fault):
                raise error
            raise HandlerExecutionError(
                error,
                controller=self.controller.identifier,
                method=self.route.method_name,
            ) from error

        return self.coerce(result, ctx, continuation)

    # ------------------------------------------------------------------
    # Parameter binding
    # ------------------------------------------------------------------

    async def bind_arguments(
        self,
        request: Request,
        ctx: HttpContext,
        continuation: Continuation,
    ) -> Dict[str, Any]:
        """
        Keyword arguments for the handler, keyed by signature position.

        Positions without a marker get nothing when they declare a default
        and None otherwise.
        """
        bound: Dict[int, ParameterMetadata] = {p.index: p for p in self.route.parameters}
        kwargs: Dict[str, Any] = {}

        for index, param in enumerate(self._signature):
            meta = bound.get(index)
            if meta is None:
                if param.default is inspect.Parameter.empty:
                    kwargs[param.name] = None
                continue

            value = await self._extract(meta, request, ctx, continuation)
            if value is _MISSING:
                if param.default is inspect.Parameter.empty:
                    kwargs[param.name] = None
                continue
            kwargs[param.name] = value

        return kwargs

    async def _extract(
        self,
        meta: ParameterMetadata,
        request: Request,
        ctx: HttpContext,
        continuation: Continuation,
    ) -> Any:
        kind = meta.kind

        if kind is ParameterKind.REQUEST_PARAM:
            if meta.name is None:
                return dict(request.path_params)
            if meta.name not in request.path_params:
                raise ParameterBindingError(
                    f"Missing path parameter '{meta.name}'",
                    parameter=meta.name,
                    kind=kind.label,
                )
            return request.path_params[meta.name]

        if kind is ParameterKind.QUERY_PARAM:
            if meta.name is None:
                return request.query_params.to_dict()
            values = request.query_params.get_all(meta.name)
            if not values:
                return _MISSING
            value = values[0] if len(values) == 1 else values
            if meta.parse_json:
                return self._parse_json(value, meta)
            return value

        if kind is ParameterKind.BODY:
            return await self._read_body(request, meta)

        if kind is ParameterKind.HEADERS:
            if meta.name is None:
                return request.headers.to_dict()
            value = request.headers.get(meta.name)
            return _MISSING if value is None else value

        if kind is ParameterKind.COOKIES:
            if meta.name is None:
                return dict(request.cookies)
            value = request.cookies.get(meta.name)
            return _MISSING if value is None else value

        if kind is ParameterKind.PRINCIPAL:
            return ctx.user

        if kind is ParameterKind.REQUEST:
            return request

        if kind is ParameterKind.RESPONSE:
            return ctx.response

        if kind is ParameterKind.NEXT:
            return continuation

        raise ParameterBindingError(f"Unsupported parameter kind {kind!r}", kind=str(kind))

    def _parse_json(self, value: Any, meta: ParameterMetadata) -> Any:
        try:
            if isinstance(value, list):
                return [orjson.loads(v) for v in value]
            return orjson.loads(value)
        except orjson.JSONDecodeError as e:
            raise ParameterBindingError(
                f"Parameter '{meta.name}' is not valid JSON: {e}",
                parameter=meta.name,
                kind=meta.kind.label,
            )

    async def _read_body(self, request: Request, meta: ParameterMetadata) -> Any:
        body = await request.body()
        if not body:
            return None

        if meta.parse_json or request.is_json():
            try:
                return await request.json()
            except InvalidJSON as e:
                raise ParameterBindingError(
                    f"Request body is not valid JSON: {e.message}",
                    kind=meta.kind.label,
                )

        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            return body

    # ------------------------------------------------------------------
    # Result coercion
    # ------------------------------------------------------------------

    def coerce(self, result: Any, ctx: HttpContext, continuation: Optional[Continuation] = None) -> Any:
        """Turn a handler's return value into a Response (or NEXT)."""
        kind = classify_result(result, ctx)

        if kind is ResultKind.RAW_HANDLED:
            ctx.response.committed = True
            return ctx.response

        if kind is ResultKind.STRUCTURED:
            response = result.to_response() if isinstance(result, HttpResult) else result
            response.merge_headers(ctx.response)
            return response

        if kind is ResultKind.EMPTY:
            if continuation is not None and continuation.called:
                return NEXT
            return ctx.response.send(b"", status=204)

        return ctx.response.send(result, status=200)

    def __repr__(self) -> str:
        return f"<RequestPipeline {self.route.verb} {self.name}>"
