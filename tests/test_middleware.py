"""
gcplog — Middleware End-to-End Tests
======================================

What:  Full request cycles through FastAPI apps wrapped by both adapters
       (pure ASGI and BaseHTTPMiddleware), plus raw ASGI edge cases.
How:   HTTPX AsyncClient with ASGITransport; records land in RecordingSink.
       Emission completes before the transport returns the response, so
       assertions can run right after the request.
"""

import anyio
import pytest
from fastapi import FastAPI
from fastapi.responses import StreamingResponse
from httpx import ASGITransport, AsyncClient

from gcplog.client import GcpLog
from gcplog.exceptions import ResponseError
from gcplog.interceptor import encoded_header_size
from gcplog.middleware import GcpLogHTTPMiddleware, GcpLogMiddleware, ResponseNotStartedError, middleware
from gcplog.middleware.base_http import BodyMirror
from gcplog.severity import Severity

from tests.conftest import RecordingSink, create_test_app, make_settings

ADAPTERS = ["asgi", "base_http"]


async def request(gcplog, path, adapter="asgi", headers=None):
    app = create_test_app(gcplog, adapter)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.get(path, headers=headers)


@pytest.mark.parametrize("adapter", ADAPTERS)
class TestRequestCycle:
    """Scenarios shared by both adapters."""

    @pytest.mark.asyncio
    async def test_success_is_info(self, gcplog, sink, adapter):
        response = await request(gcplog, "/ping", adapter)

        assert response.status_code == 200
        (record,) = sink.written
        assert record.severity is Severity.INFO
        assert record.summary == "GET /ping"
        assert record.http.status == 200
        assert record.http.method == "GET"
        assert record.http.url == "http://test/ping"
        assert record.error is None
        assert sink.reported == []

    @pytest.mark.asyncio
    async def test_not_found_is_warning_with_body_text(self, gcplog, sink, adapter):
        response = await request(gcplog, "/items/2", adapter)

        assert response.status_code == 404
        assert response.text == "not found"
        (record,) = sink.written
        assert record.severity is Severity.WARNING
        assert isinstance(record.error.error, ResponseError)
        assert str(record.error.error) == "not found"
        assert record.http.response_size == 9
        assert sink.reported == [record]

    @pytest.mark.asyncio
    async def test_response_size_with_header_overhead(self, sink, adapter):
        gcplog = GcpLog(make_settings(count_header_bytes=True), sink=sink)

        response = await request(gcplog, "/items/2", adapter)

        (record,) = sink.written
        assert record.http.response_size == 9 + encoded_header_size(response.headers.raw)

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_500(self, gcplog, sink, adapter):
        response = await request(gcplog, "/boom", adapter)

        assert response.status_code == 500
        assert response.text == "Internal Server Error"
        (record,) = sink.written
        assert record.severity is Severity.ERROR
        assert isinstance(record.error.error, RuntimeError)
        assert str(record.error.error) == "kaboom"
        assert record.error.stack_trace.startswith("Traceback")
        assert "kaboom" in record.error.stack_trace
        assert record.http.status == 500
        assert sink.reported == [record]

    @pytest.mark.asyncio
    async def test_empty_5xx_uses_method_and_path(self, gcplog, sink, adapter):
        response = await request(gcplog, "/unavailable", adapter)

        assert response.status_code == 503
        (record,) = sink.written
        assert record.severity is Severity.ERROR
        assert str(record.error.error) == "GET /unavailable"

    @pytest.mark.asyncio
    async def test_route_reported_error(self, gcplog, sink, adapter):
        await request(gcplog, "/reported", adapter)

        (record,) = sink.written
        assert record.severity is Severity.WARNING
        assert isinstance(record.error.error, ValueError)
        assert str(record.error.error) == "quota exceeded for tenant"

    @pytest.mark.asyncio
    async def test_no_error_reports_outside_production(self, sink, adapter):
        gcplog = GcpLog(make_settings(environment="development"), sink=sink)

        await request(gcplog, "/items/2", adapter)
        await request(gcplog, "/boom", adapter)

        assert [r.severity for r in sink.written] == [Severity.WARNING, Severity.ERROR]
        assert sink.reported == []

    @pytest.mark.asyncio
    async def test_trace_and_request_id(self, gcplog, sink, adapter):
        await request(
            gcplog,
            "/ping",
            adapter,
            headers={
                "X-Cloud-Trace-Context": "abc123/456;o=1",
                "X-Request-ID": "a1b2c3d4",
                "X-Forwarded-For": "203.0.113.7",
            },
        )

        (record,) = sink.written
        assert record.summary == "[a1b2c3d4] GET /ping"
        assert record.trace.trace_id == "projects/test-project/traces/abc123"
        assert record.trace.span_id == "456"
        assert record.trace.sampled is True
        assert record.http.remote_ip == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_skip_paths(self, sink, adapter):
        gcplog = GcpLog(make_settings(skip_paths="/health"), sink=sink)

        response = await request(gcplog, "/health", adapter)

        assert response.status_code == 200
        assert sink.written == []

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_affect_response(self, adapter):
        gcplog = GcpLog(make_settings(), sink=RecordingSink(fail=True))

        response = await request(gcplog, "/items/1", adapter)

        assert response.status_code == 200
        assert response.json() == {"id": 1}

    @pytest.mark.asyncio
    async def test_body_reaches_client_unchanged(self, sink, adapter):
        gcplog = GcpLog(make_settings(max_body_bytes=2), sink=sink)

        response = await request(gcplog, "/items/2", adapter)

        assert response.text == "not found"
        assert str(sink.written[0].error.error) == "no"

    @pytest.mark.asyncio
    async def test_failing_user_extractor_does_not_affect_response(self, sink, adapter):
        def user_extractor(request):
            raise KeyError("session")

        gcplog = GcpLog(make_settings(), sink=sink, user_extractor=user_extractor)

        response = await request(gcplog, "/items/1", adapter)

        assert response.status_code == 200
        assert response.json() == {"id": 1}
        assert sink.written == []

    @pytest.mark.asyncio
    async def test_streamed_chunks_reach_client_before_stream_ends(self, sink, adapter):
        gcplog = GcpLog(make_settings(max_body_bytes=4), sink=sink)
        first_chunk_sent = anyio.Event()

        async def chunks():
            yield b"first"
            with anyio.fail_after(2):
                await first_chunk_sent.wait()
            yield b"second"

        app = FastAPI()

        @app.get("/stream")
        async def stream():
            return StreamingResponse(chunks(), media_type="text/plain", status_code=503)

        if adapter == "asgi":
            app.add_middleware(GcpLogMiddleware, gcplog=gcplog)
        else:
            app.add_middleware(GcpLogHTTPMiddleware, gcplog=gcplog)

        async def server(scope, receive, send):
            async def watch(message):
                await send(message)
                if message["type"] == "http.response.body" and message.get("body"):
                    first_chunk_sent.set()

            await app(scope, receive, watch)

        async with AsyncClient(transport=ASGITransport(app=server), base_url="http://test") as client:
            response = await client.get("/stream")

        assert response.text == "firstsecond"
        (record,) = sink.written
        assert record.severity is Severity.ERROR
        assert record.http.response_size == len("firstsecond")
        assert str(record.error.error) == "firs"


class TestBodyMirror:
    @pytest.mark.asyncio
    async def test_passes_chunks_through_and_caps_copy(self):
        mirror = BodyMirror(max_body_bytes=3)

        async def chunks():
            yield b"ab"
            yield b"cd"

        seen = [chunk async for chunk in mirror.stream(chunks())]

        assert seen == [b"ab", b"cd"]
        assert bytes(mirror.body) == b"abc"
        assert mirror.size == 4
        assert mirror.truncated is True
        assert mirror.finished_at is not None

    def test_disabled_capture_is_not_truncation(self):
        mirror = BodyMirror(max_body_bytes=0)

        mirror.feed(b"not found")

        assert mirror.body == b""
        assert mirror.size == 9
        assert mirror.truncated is False


# ══════════════════════════════════════════════════════════════════════════
# Raw ASGI edge cases
# ══════════════════════════════════════════════════════════════════════════

async def fails_after_start(scope, receive, send):
    await send({"type": "http.response.start", "status": 200, "headers": []})
    await send({"type": "http.response.body", "body": b"partial", "more_body": True})
    raise ValueError("stream broke")


async def never_responds(scope, receive, send):
    return None


class TestRawAsgi:
    @pytest.mark.asyncio
    async def test_failure_after_response_started(self, gcplog, sink):
        app = middleware(gcplog)(fails_after_start)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/stream")

        assert response.status_code == 200
        assert response.text == "partial"
        (record,) = sink.written
        assert record.severity is Severity.ERROR
        assert record.http.status == 200
        assert str(record.error.error) == "stream broke"

    @pytest.mark.asyncio
    async def test_app_that_never_responds(self, gcplog, sink):
        app = GcpLogMiddleware(never_responds, gcplog)

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/silent")

        assert response.status_code == 500
        (record,) = sink.written
        assert record.severity is Severity.ERROR
        assert isinstance(record.error.error, ResponseNotStartedError)

    @pytest.mark.asyncio
    async def test_non_http_scopes_pass_through(self, gcplog, sink):
        seen = []

        async def app(scope, receive, send):
            seen.append(scope["type"])

        await GcpLogMiddleware(app, gcplog)({"type": "lifespan"}, None, None)

        assert seen == ["lifespan"]
        assert sink.written == []


class TestJsonRoute:
    @pytest.mark.asyncio
    async def test_json_body_is_logged_as_info(self, test_client, sink):
        response = await test_client.get("/items/1")

        assert response.json() == {"id": 1}
        (record,) = sink.written
        assert record.severity is Severity.INFO
        assert record.http.response_size == len(response.content)
        assert record.http.latency.total_seconds() >= 0
