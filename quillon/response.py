"""
Response object with ASGI send support.

Every request starts with a blank, uncommitted Response in its HTTP
context. A handler may write to it directly with ``send()``, which commits
it, or return a value that the pipeline turns into a Response.
"""

from __future__ import annotations

import logging
from datetime import datetime
from email.utils import formatdate
from typing import (
    Any, Awaitable, Callable, Dict, List, Mapping,
    Optional, Sequence, Union,
)

import orjson


logger = logging.getLogger("quillon.response")


def _json_default_serializer(o):
    """Default JSON serializer for non-standard types."""
    if isinstance(o, (set, frozenset)):
        return list(o)
    if hasattr(o, "isoformat"):
        return o.isoformat()
    if hasattr(o, "to_dict"):
        return o.to_dict()
    return str(o)


def dumps(obj: Any) -> bytes:
    """Serialize ``obj`` to JSON bytes."""
    return orjson.dumps(obj, default=_json_default_serializer)


class Response:
    """
    HTTP response.

    Content may be bytes, str or any JSON-serializable value; the media type
    is detected from the content when not given.
    """

    def __init__(
        self,
        content: Any = b"",
        status: int = 200,
        headers: Optional[Mapping[str, Union[str, Sequence[str]]]] = None,
        media_type: Optional[str] = None,
        *,
        encoding: str = "utf-8",
    ):
        self.status = status
        self._content = content
        self.encoding = encoding
        self.committed = False

        self._headers: Dict[str, Union[str, List[str]]] = {}
        if headers:
            for key, value in headers.items():
                if isinstance(value, (list, tuple)):
                    self._headers[key.lower()] = list(value)
                else:
                    self._headers[key.lower()] = value

        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers and content not in (b"", None):
            self._headers["content-type"] = self._detect_media_type(content)

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        return self._headers

    @property
    def content(self) -> Any:
        return self._content

    @property
    def body(self) -> bytes:
        """Encoded body bytes."""
        return self._encode_body(self._content)

    def _detect_media_type(self, content: Any) -> str:
        if isinstance(content, str):
            return "text/plain; charset=utf-8"
        elif isinstance(content, (bytes, bytearray)):
            return "application/octet-stream"
        return "application/json"

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(
        cls,
        obj: Any,
        status: int = 200,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Response":
        """Create JSON response."""
        return cls(
            content=dumps(obj),
            status=status,
            headers=headers,
            media_type="application/json",
        )

    @classmethod
    def html(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content=content, status=status, media_type="text/html; charset=utf-8", **kwargs)

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> "Response":
        return cls(content=content, status=status, media_type="text/plain; charset=utf-8", **kwargs)

    @classmethod
    def redirect(
        cls,
        url: str,
        status: int = 302,
        *,
        headers: Optional[Dict[str, str]] = None
    ) -> "Response":
        """Create redirect response pointing at ``url``."""
        redirect_headers = {"location": url}
        if headers:
            redirect_headers.update(headers)
        return cls(content=b"", status=status, headers=redirect_headers)

    # ========================================================================
    # Direct writes
    # ========================================================================

    def set_status(self, status: int) -> "Response":
        self.status = status
        return self

    def send(
        self,
        content: Any = b"",
        status: Optional[int] = None,
        media_type: Optional[str] = None,
    ) -> "Response":
        """
        Write the body and mark the response as handled.

        A committed response is sent as-is; whatever the handler returns
        afterwards is ignored.
        """
        if status is not None:
            self.status = status
        if media_type:
            self._headers["content-type"] = media_type
        elif isinstance(content, (str, bytes, bytearray)):
            if content and "content-type" not in self._headers:
                self._headers["content-type"] = self._detect_media_type(content)
        elif content is not None:
            content = dumps(content)
            self._headers["content-type"] = "application/json"
        self._content = b"" if content is None else content
        self.committed = True
        return self

    # ========================================================================
    # Header Helpers
    # ========================================================================

    def set_header(self, name: str, value: str) -> None:
        """Set header (replaces existing)."""
        self._validate_header(name, value)
        self._headers[name.lower()] = value

    def add_header(self, name: str, value: str) -> None:
        """Add header (supports multiple values)."""
        self._validate_header(name, value)
        name_lower = name.lower()
        existing = self._headers.get(name_lower)
        if existing is None:
            self._headers[name_lower] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            self._headers[name_lower] = [existing, value]

    def unset_header(self, name: str) -> None:
        self._headers.pop(name.lower(), None)

    def merge_headers(self, other: "Response") -> None:
        """Copy headers from ``other`` that this response does not set itself."""
        for name, value in other.headers.items():
            if name == "content-type" or name == "content-length":
                continue
            self._headers.setdefault(name, value)

    def _validate_header(self, name: str, value: str) -> None:
        if "\r" in name or "\n" in name or "\r" in value or "\n" in value:
            raise ValueError(f"Invalid header {name!r}: CR/LF characters are not allowed")

    def set_cookie(
        self,
        name: str,
        value: str,
        *,
        max_age: Optional[int] = None,
        expires: Optional[datetime] = None,
        path: str = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = True,
        samesite: Optional[str] = "Lax",
    ) -> None:
        """Append a ``Set-Cookie`` header."""
        cookie_parts = [f"{name}={value}"]
        if max_age is not None:
            cookie_parts.append(f"Max-Age={max_age}")
        if expires:
            cookie_parts.append(f"Expires={formatdate(expires.timestamp(), usegmt=True)}")
        cookie_parts.append(f"Path={path}")
        if domain:
            cookie_parts.append(f"Domain={domain}")
        if secure:
            cookie_parts.append("Secure")
        if httponly:
            cookie_parts.append("HttpOnly")
        if samesite:
            cookie_parts.append(f"SameSite={samesite}")
        self.add_header("set-cookie", "; ".join(cookie_parts))

    # ========================================================================
    # ASGI Send
    # ========================================================================

    async def send_asgi(
        self,
        send: Callable[[dict], Awaitable[None]],
        *,
        head: bool = False,
    ) -> None:
        """
        Send response via ASGI.

        For HEAD requests the headers (including content-length) are sent
        but the body is dropped.
        """
        body_bytes = self._encode_body(self._content)
        if self.status not in (204, 304) and "content-length" not in self._headers:
            self._headers["content-length"] = str(len(body_bytes))

        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self._prepare_headers(),
        })
        await send({
            "type": "http.response.body",
            "body": b"" if head or self.status in (204, 304) else body_bytes,
            "more_body": False,
        })

    def _prepare_headers(self) -> List[tuple]:
        """Convert headers to ASGI byte pairs."""
        headers_list = []
        for name, value in self._headers.items():
            name_bytes = name.encode("latin-1")
            if isinstance(value, list):
                for v in value:
                    headers_list.append((name_bytes, str(v).encode("latin-1")))
            else:
                headers_list.append((name_bytes, str(value).encode("latin-1")))
        return headers_list

    def _encode_body(self, content: Any) -> bytes:
        if content is None:
            return b""
        if isinstance(content, bytes):
            return content
        if isinstance(content, bytearray):
            return bytes(content)
        if isinstance(content, str):
            return content.encode(self.encoding)
        return dumps(content)

    def __repr__(self) -> str:
        return f"<Response status={self.status} committed={self.committed}>"
