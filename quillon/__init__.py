"""
Quillon - metadata-driven controllers for async Python web apps

Declare controllers as decorated classes, bind them into a DI container,
and let the route builder assemble the router:
- Controllers: class and method decorators recording routes and parameters
- DI: Scoped container; a fresh controller per request
- Pipeline: middleware, argument binding and result coercion per route
- Auth: Principal resolution through a pluggable AuthProvider
- Faults: Structured error handling with fault domains
"""

__version__ = "0.1.0"

# ============================================================================
# Controllers (imported before auth, which depends on controller.base)
# ============================================================================

from .controller import (
    AUTH_PROVIDER,
    CONTROLLER,
    HTTP_CONTEXT,
    BaseHttpController,
    BaseMiddleware,
    HttpContext,
    HttpVerb,
    MetadataStore,
    ParameterKind,
    clean_up_metadata,
    metadata_store,
    GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS, ALL,
    http_get, http_post, http_put, http_patch, http_delete,
    http_head, http_options, all_verbs, http_method,
    controller,
    request_param,
    query_param,
    request_body,
    request_headers,
    cookies,
    principal,
    http_request,
    http_response,
    next_fn,
    HttpResult,
    RouteBuilder,
    build_router,
)

# ============================================================================
# Core Framework
# ============================================================================

from .auth import AuthProvider, Principal
from .app import Application
from .config import ConfigError, ConfigLoader, RoutingConfig, ServerConfig
from .debug import get_route_info
from .di import Container, Inject, inject
from .faults import (
    Fault,
    FaultDomain,
    NoControllersFoundError,
    ControllerMetadataMissingError,
    ParameterBindingError,
    HandlerExecutionError,
)
from .middleware import ExceptionMiddleware, LoggingMiddleware
from .request import Request
from .response import Response
from .router import NEXT, Router
from .server import Server

__all__ = [
    "__version__",

    # Controllers
    "AUTH_PROVIDER",
    "CONTROLLER",
    "HTTP_CONTEXT",
    "BaseHttpController",
    "BaseMiddleware",
    "HttpContext",
    "HttpVerb",
    "MetadataStore",
    "ParameterKind",
    "clean_up_metadata",
    "metadata_store",
    "GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "ALL",
    "http_get", "http_post", "http_put", "http_patch", "http_delete",
    "http_head", "http_options", "all_verbs", "http_method",
    "controller",
    "request_param",
    "query_param",
    "request_body",
    "request_headers",
    "cookies",
    "principal",
    "http_request",
    "http_response",
    "next_fn",
    "HttpResult",
    "RouteBuilder",
    "build_router",

    # Core
    "Application",
    "AuthProvider",
    "Principal",
    "ConfigError",
    "ConfigLoader",
    "RoutingConfig",
    "ServerConfig",
    "get_route_info",
    "Container",
    "Inject",
    "inject",
    "Fault",
    "FaultDomain",
    "NoControllersFoundError",
    "ControllerMetadataMissingError",
    "ParameterBindingError",
    "HandlerExecutionError",
    "ExceptionMiddleware",
    "LoggingMiddleware",
    "Request",
    "Response",
    "NEXT",
    "Router",
    "Server",
]
