"""
Request/Response primitives and the exception middleware.
"""

import pytest

from quillon.controller import HttpContext, HttpResult
from quillon.controller import results
from quillon.faults import (
    HandlerExecutionError,
    NoControllersFoundError,
    ParameterBindingError,
)
from quillon.middleware import ExceptionMiddleware, MiddlewareStack, fault_status
from quillon.request import InvalidJSON, PayloadTooLarge, Request
from quillon.response import Response
from tests.conftest import make_receive, make_request, make_scope


# ============================================================================
# Request
# ============================================================================

class TestRequest:

    def test_basic_properties(self):
        request = make_request(
            "post", "/order/1",
            query_string="a=1&a=2&b=x",
            headers=[("Content-Type", "application/json"), ("Cookie", "sid=abc")],
        )
        assert request.method == "POST"
        assert request.path == "/order/1"
        assert request.query_params.get_all("a") == ["1", "2"]
        assert request.query_params.to_dict() == {"a": ["1", "2"], "b": "x"}
        assert request.header("content-type") == "application/json"
        assert request.cookies == {"sid": "abc"}
        assert request.is_json()

    @pytest.mark.asyncio
    async def test_body_and_json_are_cached(self):
        request = make_request(body=b'{"a": 1}')
        assert await request.body() == b'{"a": 1}'
        assert await request.json() == {"a": 1}
        assert await request.text() == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        with pytest.raises(InvalidJSON):
            await make_request(body=b"{oops").json()

    @pytest.mark.asyncio
    async def test_body_size_limit(self):
        request = Request(make_scope(), make_receive(b"x" * 20), max_body_size=10)
        with pytest.raises(PayloadTooLarge):
            await request.body()


# ============================================================================
# Response
# ============================================================================

class TestResponse:

    def test_media_type_detection(self):
        assert Response("hi").headers["content-type"].startswith("text/plain")
        assert Response(b"\x00").headers["content-type"] == "application/octet-stream"
        assert Response({"a": 1}).headers["content-type"] == "application/json"
        assert "content-type" not in Response().headers

    def test_send_commits(self):
        response = Response()
        assert not response.committed
        response.send({"ok": True}, status=201)
        assert response.committed
        assert response.status == 201
        assert response.body == b'{"ok":true}'

    def test_header_injection_rejected(self):
        with pytest.raises(ValueError):
            Response().set_header("x-bad", "a\r\nb")

    def test_merge_headers_keeps_own_values(self):
        base = Response()
        base.set_header("x-trace", "1")
        base.set_header("x-shared", "base")
        result = Response(b"", headers={"x-shared": "result"})
        result.merge_headers(base)
        assert result.headers["x-trace"] == "1"
        assert result.headers["x-shared"] == "result"

    @pytest.mark.asyncio
    async def test_send_asgi(self):
        sent = []

        async def send(message):
            sent.append(message)

        response = Response("hello")
        response.set_cookie("sid", "abc")
        await response.send_asgi(send)

        start, body = sent
        assert start["status"] == 200
        assert (b"content-length", b"5") in start["headers"]
        assert any(name == b"set-cookie" for name, _ in start["headers"])
        assert body["body"] == b"hello"

    @pytest.mark.asyncio
    async def test_no_content_has_no_body(self):
        sent = []

        async def send(message):
            sent.append(message)

        await Response(b"", status=204).send_asgi(send)
        assert sent[1]["body"] == b""
        assert all(name != b"content-length" for name, _ in sent[0]["headers"])


class TestResults:

    def test_helpers(self):
        assert results.ok().status == 200
        assert results.created("/x").headers == {"location": "/x"}
        assert results.bad_request("no").content == "no"
        assert results.conflict().status == 409
        assert results.redirect("/y", 301).headers == {"location": "/y"}
        assert results.status_code(418).status == 418

    def test_to_response(self):
        response = HttpResult(200, {"a": 1}, headers={"x-a": "1"}).to_response()
        assert response.body == b'{"a":1}'
        assert response.headers["x-a"] == "1"

        json_result = results.json({"a": 1}, status=202).to_response()
        assert json_result.status == 202
        assert json_result.headers["content-type"] == "application/json"

        assert HttpResult(404).to_response().body == b""


# ============================================================================
# Exception middleware
# ============================================================================

def make_ctx():
    return HttpContext(request=make_request(), response=Response())


class TestExceptionMiddleware:

    def test_fault_status_mapping(self):
        assert fault_status(ParameterBindingError("bad")) == 400
        assert fault_status(NoControllersFoundError()) == 500
        assert fault_status(PayloadTooLarge()) == 413

    @pytest.mark.asyncio
    async def test_wrapped_errors_are_unwrapped(self):
        middleware = ExceptionMiddleware()
        ctx = make_ctx()
        response = await middleware.handle(HandlerExecutionError(ValueError("bad")), ctx.request, ctx)
        assert response.status == 400

        response = await middleware.handle(HandlerExecutionError(PermissionError()), ctx.request, ctx)
        assert response.status == 403

    @pytest.mark.asyncio
    async def test_fault_body_hides_private_messages(self):
        ctx = make_ctx()
        response = await ExceptionMiddleware().handle(NoControllersFoundError(), ctx.request, ctx)
        assert response.status == 500
        assert b"Internal server error" in response.body

        response = await ExceptionMiddleware(debug=True).handle(NoControllersFoundError(), ctx.request, ctx)
        assert b"No controllers have been found" in response.body

    @pytest.mark.asyncio
    async def test_debug_includes_traceback(self):
        ctx = make_ctx()
        response = await ExceptionMiddleware(debug=True).handle(RuntimeError("boom"), ctx.request, ctx)
        assert b"traceback" in response.body
        assert b"boom" in response.body

    @pytest.mark.asyncio
    async def test_handlers_tried_in_order_and_failures_skipped(self):
        calls = []

        def broken(exc, request, ctx):
            calls.append("broken")
            raise RuntimeError("handler bug")

        async def declines(exc, request, ctx):
            calls.append("declines")
            return None

        def accepts(exc, request, ctx):
            calls.append("accepts")
            return Response.text("handled", status=409)

        middleware = ExceptionMiddleware(handlers=[broken, declines, accepts])
        ctx = make_ctx()
        response = await middleware.handle(RuntimeError("x"), ctx.request, ctx)
        assert response.status == 409
        assert calls == ["broken", "declines", "accepts"]


class TestMiddlewareStack:

    @pytest.mark.asyncio
    async def test_priority_order(self):
        order = []

        def make(label):
            async def middleware(request, ctx, next):
                order.append(label)
                return await next(request, ctx)
            return middleware

        stack = MiddlewareStack()
        stack.add(make("late"), priority=90)
        stack.add(make("early"), priority=10)
        stack.add(make("middle"))

        async def final(request, ctx):
            order.append("final")
            return Response()

        ctx = make_ctx()
        await stack.build_handler(final)(ctx.request, ctx)
        assert order == ["early", "middle", "late", "final"]
        assert len(stack) == 3
