"""
Quillon Controller System

Declare controllers as classes; the route builder turns the declarations
into a router, and the request pipeline runs one route per request.

Example:
    from typing import Annotated
    from quillon.controller import BaseHttpController, controller, GET, request_param

    @controller("/order")
    class OrderController(BaseHttpController):

        @GET("/")
        async def list_orders(self):
            return [{"id": "1"}]

        @GET("/:id")
        async def get_order(self, id: Annotated[str, request_param("id")]):
            return {"id": id}
"""

from .base import (
    AUTH_PROVIDER,
    CONTROLLER,
    HTTP_CONTEXT,
    BaseHttpController,
    BaseMiddleware,
    HttpContext,
)
from .metadata import (
    ControllerMetadata,
    HttpVerb,
    MetadataStore,
    ParameterKind,
    ParameterMetadata,
    RouteMetadata,
    clean_up_metadata,
    metadata_store,
)
from .decorators import (
    GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS, ALL,
    http_get, http_post, http_put, http_patch, http_delete,
    http_head, http_options, all_verbs, http_method,
    ParamMarker,
    controller,
    cookies,
    http_request,
    http_response,
    next_fn,
    principal,
    query_param,
    request_body,
    request_headers,
    request_param,
)
from .results import HttpResult
from .registry import ControllerRegistry
from .pipeline import Continuation, RequestPipeline, ResultKind, classify_result
from .builder import RouteBuilder, build_router

__all__ = [
    # Base
    "AUTH_PROVIDER",
    "CONTROLLER",
    "HTTP_CONTEXT",
    "BaseHttpController",
    "BaseMiddleware",
    "HttpContext",

    # Metadata
    "ControllerMetadata",
    "HttpVerb",
    "MetadataStore",
    "ParameterKind",
    "ParameterMetadata",
    "RouteMetadata",
    "clean_up_metadata",
    "metadata_store",

    # Decorators
    "GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS", "ALL",
    "http_get", "http_post", "http_put", "http_patch", "http_delete",
    "http_head", "http_options", "all_verbs", "http_method",
    "controller",

    # Parameter markers
    "ParamMarker",
    "request_param",
    "query_param",
    "request_body",
    "request_headers",
    "cookies",
    "principal",
    "http_request",
    "http_response",
    "next_fn",

    # Results
    "HttpResult",

    # Building and execution
    "ControllerRegistry",
    "RouteBuilder",
    "build_router",
    "RequestPipeline",
    "ResultKind",
    "Continuation",
    "classify_result",
]
