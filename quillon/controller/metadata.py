"""
Controller Metadata Store

Process-wide ledger of the routing declarations made by ``@controller``
and the route decorators. Filled while controller modules are imported,
read by the route builder and the introspector, and cleared with
``reset()`` (or ``clean_up_metadata()`` for the default store).
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum


class HttpVerb(str, Enum):
    """HTTP verbs a route can be declared for. ``ALL`` matches any verb."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    ALL = "ALL"

    def __str__(self) -> str:
        return self.value


class ParameterKind(Enum):
    """
    Where a handler argument is taken from.

    The value is the label used in route reports (``@requestParam id``).
    """
    REQUEST_PARAM = "requestParam"
    QUERY_PARAM = "queryParam"
    BODY = "requestBody"
    HEADERS = "requestHeaders"
    COOKIES = "cookies"
    PRINCIPAL = "principal"
    REQUEST = "request"
    RESPONSE = "response"
    NEXT = "next"

    @property
    def label(self) -> str:
        return self.value

    @property
    def is_named_source(self) -> bool:
        """Kinds that read one named value out of a request mapping."""
        return self in _NAMED_SOURCES


_NAMED_SOURCES = frozenset((
    ParameterKind.REQUEST_PARAM,
    ParameterKind.QUERY_PARAM,
    ParameterKind.HEADERS,
    ParameterKind.COOKIES,
))


@dataclass(frozen=True)
class ControllerMetadata:
    """
    Metadata for a controller class.

    Attributes:
        identifier: Controller name (the class ``__name__``)
        base_path: Path prefix shared by every route of the controller
        middleware: Middleware applied to every route of the controller
        target: The controller class
    """
    identifier: str
    base_path: str
    middleware: Tuple[Any, ...] = ()
    target: Optional[type] = field(default=None, compare=False)


@dataclass(frozen=True)
class ParameterMetadata:
    """
    Binding of one handler argument.

    Attributes:
        controller_identifier: Owning controller
        method_name: Handler method name
        index: Position in the method signature, ``self`` excluded
        kind: Request source
        name: Key inside the source (None injects the whole mapping)
        parse_json: Decode the raw value as JSON
    """
    controller_identifier: str
    method_name: str
    index: int
    kind: ParameterKind
    name: Optional[str] = None
    parse_json: bool = False
    target: Optional[type] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class RouteMetadata:
    """
    Metadata for a single route (controller method + verb + path).

    ``parameters`` is filled in by ``MetadataStore.get_routes`` from the
    separately registered parameter bindings, sorted by index.
    """
    controller_identifier: str
    verb: HttpVerb
    path: str
    method_name: str
    middleware: Tuple[Any, ...] = ()
    parameters: Tuple[ParameterMetadata, ...] = ()
    target: Optional[type] = field(default=None, compare=False, repr=False)

    @property
    def report_args(self) -> List[str]:
        """``@label name`` strings for the named request-sourced parameters."""
        return [
            f"@{param.kind.label} {param.name}"
            for param in self.parameters
            if param.kind.is_named_source and param.name
        ]


class MetadataStore:
    """
    Append-only ledger of controller, route and parameter declarations.

    Registration never deduplicates. Insertion order is preserved everywhere
    and drives both route registration order and report order.
    """

    def __init__(self):
        self._controllers: List[ControllerMetadata] = []
        self._routes: Dict[str, List[RouteMetadata]] = {}
        self._parameters: Dict[Tuple[str, str], List[ParameterMetadata]] = {}

    def register_controller(self, meta: ControllerMetadata) -> None:
        self._controllers.append(meta)

    def register_route(self, meta: RouteMetadata) -> None:
        self._routes.setdefault(meta.controller_identifier, []).append(meta)

    def register_parameter(self, meta: ParameterMetadata) -> None:
        key = (meta.controller_identifier, meta.method_name)
        self._parameters.setdefault(key, []).append(meta)

    def get_controller(
        self,
        identifier: str,
        target: Optional[type] = None,
    ) -> Optional[ControllerMetadata]:
        """
        First controller registered under ``identifier``.

        When ``target`` is given, only metadata declared by that class
        matches.
        """
        for meta in self._controllers:
            if meta.identifier != identifier:
                continue
            if target is None or meta.target is None or meta.target is target:
                return meta
        return None

    def get_controllers(self) -> List[ControllerMetadata]:
        return list(self._controllers)

    def get_routes(self, identifier: str, target: Optional[type] = None) -> List[RouteMetadata]:
        """
        Routes of a controller in declaration order, with their parameters.

        Returned objects are copies; mutating them does not touch the store.
        """
        routes = []
        for route in self._routes.get(identifier, ()):
            if target is not None and route.target is not None and route.target is not target:
                continue
            params = [
                param
                for param in self._parameters.get((identifier, route.method_name), ())
                if target is None or param.target is None or param.target is target
            ]
            params.sort(key=lambda p: p.index)
            routes.append(RouteMetadata(
                controller_identifier=route.controller_identifier,
                verb=route.verb,
                path=route.path,
                method_name=route.method_name,
                middleware=route.middleware,
                parameters=tuple(params),
                target=route.target,
            ))
        return routes

    def get_all(self) -> List[Tuple[ControllerMetadata, List[RouteMetadata]]]:
        """Every declared controller with its routes, in declaration order."""
        return [
            (meta, self.get_routes(meta.identifier, meta.target))
            for meta in self._controllers
        ]

    def reset(self) -> None:
        """Discard every declaration."""
        self._controllers.clear()
        self._routes.clear()
        self._parameters.clear()

    def __len__(self) -> int:
        return len(self._controllers)

    def __repr__(self) -> str:
        routes = sum(len(r) for r in self._routes.values())
        return f"<MetadataStore controllers={len(self._controllers)} routes={routes}>"


metadata_store = MetadataStore()


def clean_up_metadata() -> None:
    """Reset the default metadata store."""
    metadata_store.reset()
