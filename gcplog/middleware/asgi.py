"""
gcplog — ASGI Request Logging Middleware
==========================================

What:  Pure ASGI middleware that logs every HTTP request through GcpLog.
How:   Wraps `send` in a ResponseInterceptor, runs the downstream app, then
       builds a LogRecord from what was captured and emits it after the
       response has been fully sent.

Per-request state machine:
    ENTERED → HANDLER_RUNNING → COMPLETED → EMITTED
                              ↘ PANICKED  ↗

    PANICKED: the app raised. If no response has started, a complete
    500 response is sent; if one has started, its body is closed. An ERROR
    record carrying the traceback is emitted and the exception is absorbed.

Usage:
    app.add_middleware(GcpLogMiddleware, gcplog=gcplog)
    # or, as an app → app wrapper:
    app = middleware(gcplog)(app)
"""

import logging
import time
import traceback
from datetime import timedelta
from typing import Callable, Optional

from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from gcplog.client import GcpLog
from gcplog.interceptor import ResponseInterceptor

logger = logging.getLogger(__name__)

_ERROR_BODY = b"Internal Server Error"


class ResponseNotStartedError(RuntimeError):
    """The application returned without sending a response."""


class GcpLogMiddleware:
    """Logs method, URL, status, size, latency and trace of each request."""

    def __init__(self, app: ASGIApp, gcplog: GcpLog):
        self.app = app
        self.gcplog = gcplog
        self.skip_paths = set(gcplog.settings.skip_paths_list)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path") in self.skip_paths:
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        settings = self.gcplog.settings
        interceptor = ResponseInterceptor(
            send,
            max_body_bytes=settings.body_capture_limit,
            count_header_bytes=settings.count_header_bytes,
        )

        error: Optional[BaseException] = None
        stack_trace: Optional[str] = None
        try:
            await self.app(scope, receive, interceptor)
        except Exception as exc:
            error, stack_trace = exc, traceback.format_exc()
        else:
            if not interceptor.header_committed:
                error = ResponseNotStartedError("application returned without starting a response")
                stack_trace = ""

        if error is not None:
            await self._recover(interceptor)

        latency = timedelta(seconds=time.perf_counter() - start_time)
        request = Request(scope)
        try:
            record = self.gcplog.builder.build(
                request,
                interceptor.captured(),
                latency,
                error=error,
                stack_trace=stack_trace,
                recovered=error is not None,
            )
        except Exception as e:
            logger.error("Could not build log record for %s %s: %s", request.method, request.url.path, e)
            return
        await self.gcplog.emit_async(record)

    async def _recover(self, interceptor: ResponseInterceptor) -> None:
        """Finish the response after a failure so the client gets a reply."""
        try:
            if not interceptor.header_committed:
                await interceptor.set_status(
                    500,
                    [
                        (b"content-type", b"text/plain; charset=utf-8"),
                        (b"content-length", str(len(_ERROR_BODY)).encode("latin-1")),
                    ],
                )
                await interceptor.write(_ERROR_BODY)
            elif not interceptor.body_complete:
                await interceptor.write(b"")
        except Exception as e:
            logger.warning("Could not complete response after handler failure: %s", e)


def middleware(gcplog: GcpLog) -> Callable[[ASGIApp], ASGIApp]:
    """Return an app → app wrapper that installs GcpLogMiddleware."""

    def wrap(app: ASGIApp) -> ASGIApp:
        return GcpLogMiddleware(app, gcplog)

    return wrap
