"""
gcplog — Test Configuration (conftest.py)
===========================================

What:  Shared pytest fixtures for the test suite.
How:   No Google credentials are needed: request-level tests run against a
       RecordingSink, and the Cloud sink tests patch the client classes.

Fixtures:
    settings        Settings for a production deployment on the stderr sink
    sink            RecordingSink collecting written and reported records
    gcplog          GcpLog wired to `sink`
    make_request    Builds a Starlette Request from method/path/headers
    test_client     HTTPX client for a FastAPI app using GcpLogMiddleware
"""

import os
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from httpx import ASGITransport, AsyncClient
from starlette.requests import Request as StarletteRequest

from gcplog.client import GcpLog
from gcplog.config import Settings
from gcplog.middleware import GcpLogHTTPMiddleware, GcpLogMiddleware
from gcplog.record import LogRecord
from gcplog.sinks.base import LogSink

# Keep a developer's GCPLOG_* variables out of the tests
for _key in list(os.environ):
    if _key.startswith("GCPLOG_"):
        del os.environ[_key]


class RecordingSink(LogSink):
    """In-memory sink recording every call."""

    name = "recording"

    def __init__(self, fail: bool = False):
        self.written: List[LogRecord] = []
        self.reported: List[LogRecord] = []
        self.closed = False
        self.fail = fail

    def write(self, record: LogRecord) -> None:
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.written.append(record)

    def report(self, record: LogRecord) -> None:
        if self.fail:
            raise RuntimeError("sink unavailable")
        self.reported.append(record)

    def close(self) -> None:
        self.closed = True


def make_settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = {
        "project_id": "test-project",
        "service_name": "test-service",
        "sink": "stderr",
        "environment": "production",
        "count_header_bytes": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def gcplog(settings, sink) -> GcpLog:
    return GcpLog(settings, sink=sink)


@pytest.fixture
def make_request():
    """Factory for Starlette requests built from a bare ASGI scope."""

    def _make(
        method: str = "GET",
        path: str = "/",
        headers: Optional[Dict[str, str]] = None,
        client: Optional[tuple] = ("10.0.0.1", 51000),
        query_string: bytes = b"",
    ) -> StarletteRequest:
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "server": ("testserver", 80),
            "client": client,
            "path": path,
            "root_path": "",
            "query_string": query_string,
            "headers": [
                (name.lower().encode("latin-1"), value.encode("latin-1"))
                for name, value in (headers or {}).items()
            ],
        }
        return StarletteRequest(scope)

    return _make


def create_test_app(gcplog: GcpLog, adapter: str = "asgi") -> FastAPI:
    """FastAPI app exercising every outcome the middleware classifies."""
    app = FastAPI()

    @app.get("/ping")
    async def ping():
        return None

    @app.get("/items/{item_id}")
    async def get_item(item_id: int):
        if item_id != 1:
            return PlainTextResponse("not found", status_code=404)
        return {"id": item_id}

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    @app.get("/unavailable")
    async def unavailable():
        return PlainTextResponse("", status_code=503)

    @app.get("/reported")
    async def reported(request: Request):
        request.state.gcplog_error = ValueError("quota exceeded for tenant")
        return PlainTextResponse("bad request", status_code=400)

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    if adapter == "asgi":
        app.add_middleware(GcpLogMiddleware, gcplog=gcplog)
    else:
        app.add_middleware(GcpLogHTTPMiddleware, gcplog=gcplog)
    return app


@pytest_asyncio.fixture
async def test_client(gcplog):
    """
    HTTPX AsyncClient talking to the ASGI-middleware test app.

    Usage:
        async def test_ping(test_client, sink):
            response = await test_client.get("/ping")
            assert sink.written[0].severity is Severity.INFO
    """
    app = create_test_app(gcplog)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
