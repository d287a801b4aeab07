"""
Structured handler results.

A handler may return an ``HttpResult`` instead of a plain value to choose
the status code, headers and body explicitly.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, field

from ..response import Response


@dataclass
class HttpResult:
    """
    Status, body and headers produced by a handler.

    ``content`` of None means an empty body. Other content is serialized
    the same way plain return values are (str as text, bytes as-is,
    anything else as JSON).
    """
    status: int = 200
    content: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    media_type: Optional[str] = None

    def to_response(self) -> Response:
        if self.content is None:
            return Response(b"", status=self.status, headers=self.headers, media_type=self.media_type)
        if isinstance(self.content, (str, bytes, bytearray)):
            return Response(self.content, status=self.status, headers=self.headers, media_type=self.media_type)
        response = Response.json(self.content, status=self.status, headers=self.headers)
        if self.media_type:
            response.set_header("content-type", self.media_type)
        return response


def ok(content: Any = None) -> HttpResult:
    """200, with ``content`` as the body when given."""
    return HttpResult(200, content)


def created(location: str, content: Any = None) -> HttpResult:
    """201 with a ``Location`` header."""
    return HttpResult(201, content, headers={"location": location})


def json(content: Any, status: int = 200) -> HttpResult:
    return HttpResult(status, content, media_type="application/json")


def bad_request(message: Optional[str] = None) -> HttpResult:
    return HttpResult(400, message)


def not_found() -> HttpResult:
    return HttpResult(404)


def conflict() -> HttpResult:
    return HttpResult(409)


def internal_server_error() -> HttpResult:
    return HttpResult(500)


def redirect(uri: str, status: int = 302) -> HttpResult:
    return HttpResult(status, headers={"location": uri})


def status_code(code: int) -> HttpResult:
    return HttpResult(code)
