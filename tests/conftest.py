"""
Shared test fixtures and helpers for the Quillon test suite.
"""

import pytest
from typing import List, Optional

import httpx

from quillon.controller import clean_up_metadata
from quillon.request import Request


@pytest.fixture(autouse=True)
def _isolated_metadata():
    """Every test declares its controllers against an empty store."""
    clean_up_metadata()
    yield
    clean_up_metadata()


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    for name, value in headers or ():
        raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8"),
        "headers": raw_headers,
        "scheme": "http",
        "server": ("127.0.0.1", 8000),
        "client": ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_receive(body: bytes = b""):
    """Create an ASGI receive callable delivering ``body`` in one message."""
    messages = [{"type": "http.request", "body": body, "more_body": False}]

    async def receive():
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    return receive


def make_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
) -> Request:
    """Build a full Request object for testing."""
    return Request(make_scope(method, path, query_string, headers), make_receive(body))


def client_for(app) -> httpx.AsyncClient:
    """HTTP client talking to ``app`` in-process."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
