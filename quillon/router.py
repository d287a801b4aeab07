"""
Router - ordered, pattern-based request dispatch.

Routes are tried in registration order and the first match handles the
request. Patterns use ``:name`` placeholders for single path segments and
``*`` for any remainder:

    /order/:id        matches /order/42 with {"id": "42"}
    /files/*          matches /files/a/b/c

Trailing slashes are not significant. A handler may decline a matched
request by returning ``NEXT``, in which case dispatch continues with the
following layers.

Routers can be mounted under a prefix inside other routers; the route
table built from controllers is mounted this way under the root path.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union
from dataclasses import dataclass, field
import logging
import re

from .utils import join_paths, normalize_path

logger = logging.getLogger("quillon.router")


class _Next:
    """Sentinel returned by a handler that passes the request on."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NEXT"

    def __bool__(self) -> bool:
        return False


NEXT = _Next()

Handler = Callable[[Any, Any], Awaitable[Any]]

_PARAM_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)|\*")


def compile_path(path: str, *, prefix: bool = False) -> Tuple["re.Pattern[str]", List[str]]:
    """
    Compile a route pattern to a regex.

    Args:
        path: Pattern such as ``/order/:id``
        prefix: Match the pattern as a path prefix (for mounts)

    Returns:
        (compiled regex, parameter names in order)
    """
    path = normalize_path(path).rstrip("/")
    param_names: List[str] = []
    regex = "^"
    pos = 0
    for m in _PARAM_RE.finditer(path):
        regex += re.escape(path[pos:m.start()])
        if m.group(0) == "*":
            regex += ".*"
        else:
            name = m.group(1)
            if name in param_names:
                raise ValueError(f"Duplicate path parameter ':{name}' in {path!r}")
            param_names.append(name)
            regex += f"(?P<{name}>[^/]+)"
        pos = m.end()
    regex += re.escape(path[pos:])

    if prefix:
        regex += r"(?=/|$)"
    else:
        regex += "/?$"
    return re.compile(regex), param_names


@dataclass
class Route:
    """A single verb + pattern bound to a handler."""

    method: str
    path: str
    handler: Handler
    name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    _regex: "re.Pattern[str]" = field(init=False, repr=False)
    param_names: List[str] = field(init=False, default_factory=list)

    def __post_init__(self):
        self.method = self.method.upper()
        self._regex, self.param_names = compile_path(self.path)

    def matches_method(self, method: str) -> bool:
        if self.method == "ALL" or self.method == method:
            return True
        return method == "HEAD" and self.method == "GET"

    def match(self, method: str, path: str) -> Optional[Dict[str, str]]:
        """Return path parameters if this route handles ``method path``."""
        if not self.matches_method(method):
            return None
        m = self._regex.match(path)
        if m is None:
            return None
        return {name: m.group(name) for name in self.param_names}


@dataclass
class Mount:
    """A child router attached under a path prefix."""

    prefix: str
    router: "Router"
    _regex: "re.Pattern[str]" = field(init=False, repr=False)

    def __post_init__(self):
        self.prefix = normalize_path(self.prefix)
        self._regex, _ = compile_path(self.prefix, prefix=True)

    def strip(self, path: str) -> Optional[str]:
        """Path relative to the mount, or None when it is outside the prefix."""
        m = self._regex.match(path)
        if m is None:
            return None
        return path[m.end():] or "/"


class Router:
    """
    Ordered collection of routes and mounted sub-routers.

    Example:
        router = Router()
        router.add_route("GET", "/health", health)
        router.mount("/api", api_router)
        response = await router.dispatch(request, ctx)
    """

    def __init__(self):
        self._layers: List[Union[Route, Mount]] = []

    def add_route(
        self,
        method: str,
        path: str,
        handler: Handler,
        *,
        name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Route:
        route = Route(method=method, path=path, handler=handler, name=name, metadata=metadata or {})
        self._layers.append(route)
        logger.debug("Route added: %s %s", route.method, route.path)
        return route

    def route(self, method: str, path: str, *, name: Optional[str] = None):
        """Decorator form of ``add_route``."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(method, path, handler, name=name)
            return handler
        return decorator

    def mount(self, prefix: str, router: "Router") -> Mount:
        mount = Mount(prefix=prefix, router=router)
        self._layers.append(mount)
        logger.debug("Router mounted at %s", mount.prefix)
        return mount

    def routes(self, prefix: str = "/") -> List[Tuple[str, str, Route]]:
        """Flattened ``(method, full path, route)`` triples in dispatch order."""
        result: List[Tuple[str, str, Route]] = []
        for layer in self._layers:
            if isinstance(layer, Mount):
                result.extend(layer.router.routes(join_paths(prefix, layer.prefix)))
            else:
                result.append((layer.method, join_paths(prefix, layer.path), layer))
        return result

    def __len__(self) -> int:
        return len(self.routes())

    async def dispatch(self, request: Any, ctx: Any, path: Optional[str] = None) -> Any:
        """
        Hand the request to the first matching route.

        Returns:
            The handler's response, or None when nothing handled the request.
        """
        path = request.path if path is None else path
        method = request.method

        for layer in self._layers:
            if isinstance(layer, Mount):
                sub_path = layer.strip(path)
                if sub_path is None:
                    continue
                result = await layer.router.dispatch(request, ctx, sub_path)
                if result is not None:
                    return result
                continue

            params = layer.match(method, path)
            if params is None:
                continue

            request.path_params = params
            result = await layer.handler(request, ctx)
            if result is NEXT:
                continue
            return result

        return None
