"""
Tests for observability helpers.
"""

import pytest
import structlog

from access_control.observability import TracingContextMiddleware, trace_function


class TestTracingContextMiddleware:
    """Test cases for the structlog context binding."""

    @pytest.mark.asyncio
    async def test_context_is_bound_during_request_and_cleared_after(self):
        seen = {}

        async def app(scope, receive, send):
            seen.update(structlog.contextvars.get_contextvars())

        structlog.contextvars.bind_contextvars(correlation_id="stale")
        middleware = TracingContextMiddleware(app, service_name="face-access-control")

        await middleware({"type": "http"}, None, None)

        assert seen == {"service": "face-access-control"}
        assert structlog.contextvars.get_contextvars() == {}

    @pytest.mark.asyncio
    async def test_context_is_cleared_when_the_app_fails(self):
        async def app(scope, receive, send):
            raise RuntimeError("boom")

        middleware = TracingContextMiddleware(app)

        with pytest.raises(RuntimeError):
            await middleware({"type": "http"}, None, None)

        assert structlog.contextvars.get_contextvars() == {}

    @pytest.mark.asyncio
    async def test_non_http_scopes_pass_through(self):
        calls = []

        async def app(scope, receive, send):
            calls.append(scope["type"])

        structlog.contextvars.bind_contextvars(correlation_id="kept")
        await TracingContextMiddleware(app)({"type": "lifespan"}, None, None)

        assert calls == ["lifespan"]
        assert structlog.contextvars.get_contextvars() == {"correlation_id": "kept"}
        structlog.contextvars.clear_contextvars()


class TestTraceFunction:
    """Test cases for the tracing decorator without a configured tracer."""

    @pytest.mark.asyncio
    async def test_async_function_runs_untraced(self):
        @trace_function("operation")
        async def double(value):
            return value * 2

        assert await double(4) == 8

    def test_sync_function_keeps_its_name(self):
        @trace_function()
        def triple(value):
            return value * 3

        assert triple(2) == 6
        assert triple.__name__ == "triple"
