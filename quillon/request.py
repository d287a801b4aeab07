"""
Request object wrapping an ASGI scope and receive channel.

Body access is streaming-first and cached after the first full read so
several parameter bindings (``request_body``, middleware, the handler) can
read the same payload.
"""

from __future__ import annotations

import asyncio
from http.cookies import CookieError, SimpleCookie
from typing import (
    Any, AsyncIterator, Awaitable, Callable, Dict,
    Mapping, Optional,
)
from urllib.parse import parse_qsl

import orjson

from ._datastructures import Headers, MultiDict
from .faults import Fault, FaultDomain, Severity


# ============================================================================
# Request Faults
# ============================================================================

class RequestFault(Fault):
    """Base class for request-related faults."""

    def __init__(self, code: str, message: str, *, severity: Severity = Severity.ERROR, **metadata):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.IO,
            severity=severity,
            public=True,
            metadata=metadata,
        )


class PayloadTooLarge(RequestFault):
    """Request payload exceeds limits (413)."""

    def __init__(self, message: str = "Payload too large", **metadata):
        super().__init__("PAYLOAD_TOO_LARGE", message, **metadata)


class ClientDisconnect(RequestFault):
    """Client disconnected during request (499)."""

    def __init__(self, message: str = "Client disconnected", **metadata):
        super().__init__("CLIENT_DISCONNECT", message, severity=Severity.WARN, **metadata)


class InvalidJSON(RequestFault):
    """Invalid JSON payload (400)."""

    def __init__(self, message: str = "Invalid JSON", **metadata):
        super().__init__("INVALID_JSON", message, **metadata)


# ============================================================================
# Request Class
# ============================================================================

class Request:
    """
    HTTP request for a single ASGI ``http`` call.

    Exposes the method, path, query parameters, headers, cookies and body,
    plus ``path_params`` filled in by the router when a route matches and a
    free-form ``state`` dict.
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[..., Awaitable[dict]],
        send: Optional[Callable] = None,
        *,
        max_body_size: int = 10_485_760,  # 10 MiB
        chunk_size: int = 64 * 1024,
    ):
        self.scope = scope
        self._receive = receive
        self._send = send

        self.max_body_size = max_body_size
        self.chunk_size = chunk_size

        self.state: Dict[str, Any] = {}
        self.path_params: Dict[str, str] = {}

        # Cached values
        self._body: Optional[bytes] = None
        self._body_consumed = False
        self._json: Any = None
        self._json_loaded = False
        self._query_params: Optional[MultiDict] = None
        self._headers: Optional[Headers] = None
        self._cookies: Optional[Dict[str, str]] = None
        self._disconnected = False

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        """HTTP method (GET, POST, etc.)."""
        return self.scope.get("method", "GET").upper()

    @property
    def path(self) -> str:
        """Request path (decoded)."""
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("latin-1")

    @property
    def client(self) -> Optional[tuple]:
        """Client address (host, port)."""
        return self.scope.get("client")

    @property
    def query_params(self) -> MultiDict:
        """Parsed query parameters."""
        if self._query_params is None:
            self._query_params = MultiDict(
                parse_qsl(self.query_string, keep_blank_values=True)
            )
        return self._query_params

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", [])))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name, default)

    @property
    def cookies(self) -> Dict[str, str]:
        """Cookies sent in the ``Cookie`` header."""
        if self._cookies is None:
            self._cookies = {}
            cookie_header = self.header("cookie", "")
            if cookie_header:
                cookie = SimpleCookie()
                try:
                    cookie.load(cookie_header)
                except CookieError:
                    return self._cookies
                self._cookies = {key: morsel.value for key, morsel in cookie.items()}
        return self._cookies

    # ========================================================================
    # Body
    # ========================================================================

    async def _receive_message(self) -> dict:
        try:
            message = await self._receive()
        except asyncio.CancelledError:
            self._disconnected = True
            raise
        if message["type"] == "http.disconnect":
            self._disconnected = True
            raise ClientDisconnect()
        return message

    def is_disconnected(self) -> bool:
        return self._disconnected

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """
        Stream the request body.

        Raises:
            ClientDisconnect: If the client goes away mid-body
            PayloadTooLarge: If the body exceeds ``max_body_size``
        """
        if self._body is not None:
            for i in range(0, len(self._body), self.chunk_size):
                yield self._body[i:i + self.chunk_size]
            return

        if self._body_consumed:
            return

        total_size = 0
        while True:
            message = await self._receive_message()
            if message["type"] != "http.request":
                continue

            chunk = message.get("body", b"")
            if chunk:
                total_size += len(chunk)
                if total_size > self.max_body_size:
                    raise PayloadTooLarge(
                        "Request body exceeds maximum size",
                        max_allowed=self.max_body_size,
                        actual=total_size,
                    )
                yield chunk

            if not message.get("more_body", False):
                break

        self._body_consumed = True

    async def body(self) -> bytes:
        """Read the full request body (idempotent)."""
        if self._body is None:
            chunks = [chunk async for chunk in self.iter_bytes()]
            self._body = b"".join(chunks)
        return self._body

    async def text(self, encoding: str = "utf-8") -> str:
        return (await self.body()).decode(encoding)

    async def json(self) -> Any:
        """
        Parse the request body as JSON.

        Raises:
            InvalidJSON: If the payload is empty or malformed
        """
        if not self._json_loaded:
            body_bytes = await self.body()
            try:
                self._json = orjson.loads(body_bytes)
            except orjson.JSONDecodeError as e:
                raise InvalidJSON(f"Invalid JSON: {e}")
            self._json_loaded = True
        return self._json

    def is_json(self) -> bool:
        """Whether the Content-Type declares a JSON payload."""
        content_type = (self.header("content-type") or "").split(";")[0].strip().lower()
        return content_type == "application/json" or content_type.endswith("+json")

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
