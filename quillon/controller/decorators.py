"""
Controller Decorators

``@controller`` registers a class and its routes in the metadata store.
Route decorators (``GET``, ``POST``, ...) only tag methods; nothing is
registered until the class decorator runs over the finished class.

Handler arguments are bound with parameter markers inside
``typing.Annotated``:

    @controller("/order")
    class OrderController(BaseHttpController):

        @GET("/:id")
        async def get_order(self, id: Annotated[str, request_param("id")]):
            ...
"""

from typing import Any, Callable, Dict, List, Optional, TypeVar, Union, get_args, get_origin, get_type_hints, Annotated
from dataclasses import dataclass
import inspect
import logging

from .metadata import (
    ControllerMetadata,
    HttpVerb,
    MetadataStore,
    ParameterKind,
    ParameterMetadata,
    RouteMetadata,
    metadata_store,
)

logger = logging.getLogger("quillon.controller")

F = TypeVar('F', bound=Callable[..., Any])
C = TypeVar('C', bound=type)


# ============================================================================
# Route decorators
# ============================================================================

class RouteDecorator:
    """
    Base route decorator.

    Attaches ``(verb, path, middleware)`` to the method under
    ``__route_metadata__``. A method may carry several routes.
    """

    method: Optional[HttpVerb] = None

    def __init__(self, path: str = "/", *middleware: Any):
        self.path = path
        self.middleware = tuple(middleware)

    def __call__(self, func: F) -> F:
        if self.method is None:
            raise TypeError(f"{type(self).__name__} has no HTTP verb")

        if not hasattr(func, '__route_metadata__'):
            func.__route_metadata__ = []

        # Decorators apply bottom-up; keep the list in source order
        func.__route_metadata__.insert(0, {
            'verb': self.method,
            'path': self.path,
            'middleware': self.middleware,
        })
        return func


class GET(RouteDecorator):
    """GET request decorator."""
    method = HttpVerb.GET


class POST(RouteDecorator):
    """POST request decorator."""
    method = HttpVerb.POST


class PUT(RouteDecorator):
    """PUT request decorator."""
    method = HttpVerb.PUT


class PATCH(RouteDecorator):
    """PATCH request decorator."""
    method = HttpVerb.PATCH


class DELETE(RouteDecorator):
    """DELETE request decorator."""
    method = HttpVerb.DELETE


class HEAD(RouteDecorator):
    """HEAD request decorator."""
    method = HttpVerb.HEAD


class OPTIONS(RouteDecorator):
    """OPTIONS request decorator."""
    method = HttpVerb.OPTIONS


class ALL(RouteDecorator):
    """Route matching every verb."""
    method = HttpVerb.ALL


http_get = GET
http_post = POST
http_put = PUT
http_patch = PATCH
http_delete = DELETE
http_head = HEAD
http_options = OPTIONS
all_verbs = ALL


def http_method(verb: Union[str, HttpVerb], path: str = "/", *middleware: Any) -> Callable[[F], F]:
    """
    Generic route decorator.

    Example:
        @http_method("patch", "/:id")
        async def update(self, ...):
            ...
    """
    decorator = RouteDecorator(path, *middleware)
    decorator.method = HttpVerb(str(verb).upper())
    return decorator


# ============================================================================
# Parameter markers
# ============================================================================

@dataclass(frozen=True)
class ParamMarker:
    """``Annotated`` metadata binding a handler argument to a request source."""
    kind: ParameterKind
    name: Optional[str] = None
    parse_json: bool = False


def request_param(name: Optional[str] = None) -> ParamMarker:
    """Path parameter ``name``; without a name, all path parameters."""
    return ParamMarker(ParameterKind.REQUEST_PARAM, name)


def query_param(name: Optional[str] = None, parse_json: bool = False) -> ParamMarker:
    """Query string value ``name``; without a name, the whole query mapping."""
    return ParamMarker(ParameterKind.QUERY_PARAM, name, parse_json)


def request_body(parse_json: bool = False) -> ParamMarker:
    """Request body, JSON-decoded when the request declares JSON or ``parse_json`` is set."""
    return ParamMarker(ParameterKind.BODY, None, parse_json)


def request_headers(name: Optional[str] = None) -> ParamMarker:
    """Header ``name`` (case-insensitive); without a name, every header."""
    return ParamMarker(ParameterKind.HEADERS, name)


def cookies(name: Optional[str] = None) -> ParamMarker:
    """Cookie ``name``; without a name, every cookie."""
    return ParamMarker(ParameterKind.COOKIES, name)


def principal() -> ParamMarker:
    """The request's Principal."""
    return ParamMarker(ParameterKind.PRINCIPAL)


def http_request() -> ParamMarker:
    return ParamMarker(ParameterKind.REQUEST)


def http_response() -> ParamMarker:
    return ParamMarker(ParameterKind.RESPONSE)


def next_fn() -> ParamMarker:
    """Continuation that passes the request on to the next matching route."""
    return ParamMarker(ParameterKind.NEXT)


_POSITIONAL_KINDS = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def extract_parameters(
    func: Callable[..., Any],
    controller_identifier: str,
    method_name: Optional[str] = None,
    target: Optional[type] = None,
) -> List[ParameterMetadata]:
    """
    Read parameter markers from a handler's annotations.

    Raises:
        TypeError: A marker sits on a keyword-only or variadic parameter
    """
    method_name = method_name or func.__name__
    try:
        hints = get_type_hints(func, include_extras=True)
    except (NameError, TypeError):
        # Unresolvable forward references; fall back to raw annotations
        hints = getattr(func, "__annotations__", {})

    params = []
    signature = inspect.signature(func)
    handler_params = list(signature.parameters.values())[1:]  # drop self

    for index, param in enumerate(handler_params):
        annotation = hints.get(param.name, param.annotation)
        if get_origin(annotation) is not Annotated:
            continue
        for marker in get_args(annotation)[1:]:
            if isinstance(marker, ParamMarker):
                if param.kind not in _POSITIONAL_KINDS:
                    raise TypeError(
                        f"{controller_identifier}.{method_name}: parameter {param.name!r} "
                        f"must be positional to take a {marker.kind.label} marker"
                    )
                params.append(ParameterMetadata(
                    controller_identifier=controller_identifier,
                    method_name=method_name,
                    index=index,
                    kind=marker.kind,
                    name=marker.name,
                    parse_json=marker.parse_json,
                    target=target,
                ))
                break

    return params


# ============================================================================
# Class decorator
# ============================================================================

def _collect_members(cls: type) -> Dict[str, Any]:
    """Class attributes in definition order, base classes first."""
    members: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, attr in vars(klass).items():
            members[name] = attr
    return members


def controller(
    path: str = "/",
    *middleware: Any,
    store: Optional[MetadataStore] = None,
) -> Callable[[C], C]:
    """
    Declare a controller class mounted at ``path``.

    Registers the controller, each tagged method's routes (in definition
    order) and their parameter bindings in the metadata store.

    Args:
        path: Base path of every route in the controller
        *middleware: Middleware applied to every route of the controller
        store: Metadata store (defaults to the process-wide store)
    """
    target_store = store if store is not None else metadata_store

    def decorator(cls: C) -> C:
        identifier = cls.__name__

        # a rejected declaration registers nothing
        routes: List[RouteMetadata] = []
        params: List[ParameterMetadata] = []
        for name, attr in _collect_members(cls).items():
            func = attr.__func__ if isinstance(attr, (staticmethod, classmethod)) else attr
            route_entries = getattr(func, "__route_metadata__", None)
            if not route_entries or not callable(func):
                continue

            for entry in route_entries:
                routes.append(RouteMetadata(
                    controller_identifier=identifier,
                    verb=entry['verb'],
                    path=entry['path'],
                    method_name=name,
                    middleware=entry['middleware'],
                    target=cls,
                ))
            params.extend(extract_parameters(func, identifier, method_name=name, target=cls))

        target_store.register_controller(ControllerMetadata(
            identifier=identifier,
            base_path=path,
            middleware=tuple(middleware),
            target=cls,
        ))
        for route in routes:
            target_store.register_route(route)
        for param in params:
            target_store.register_parameter(param)

        logger.debug("Controller %s declared at %s with %d route(s)", identifier, path, len(routes))
        return cls

    return decorator
