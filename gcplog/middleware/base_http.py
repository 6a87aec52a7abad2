"""
gcplog — Starlette / FastAPI Handler-Chain Middleware
=======================================================

What:  BaseHTTPMiddleware variant of the request logger, for applications
       that compose middleware through Starlette's dispatch(request,
       call_next) chain.
How:   The response body iterator is wrapped in a BodyMirror that passes each
       chunk straight through while counting its size and keeping a capped
       copy. Record building and emission run as a background task, after
       the last chunk has been sent.

Usage:
    app.add_middleware(GcpLogHTTPMiddleware, gcplog=gcplog)
"""

import logging
import time
import traceback
from datetime import timedelta
from typing import Any, AsyncIterable, AsyncIterator, Optional

from starlette.background import BackgroundTask, BackgroundTasks
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp

from gcplog.client import GcpLog
from gcplog.interceptor import CapturedResponse, encoded_header_size

logger = logging.getLogger(__name__)


class BodyMirror:
    """
    Counts and mirrors a response body while it streams to the client.

    Args:
        max_body_bytes: Cap on the mirrored copy; 0 disables mirroring.
    """

    def __init__(self, max_body_bytes: int):
        self.max_body_bytes = max_body_bytes
        self.body = bytearray()
        self.size = 0
        self.truncated = False
        self.finished_at: Optional[float] = None

    def feed(self, chunk: bytes) -> None:
        if chunk and self.max_body_bytes:
            room = self.max_body_bytes - len(self.body)
            if room > 0:
                self.body.extend(chunk[:room])
            if len(chunk) > max(room, 0):
                self.truncated = True
        self.size += len(chunk)

    def finish(self) -> None:
        if self.finished_at is None:
            self.finished_at = time.perf_counter()

    async def stream(self, chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
        try:
            async for chunk in chunks:
                self.feed(chunk)
                yield chunk
        finally:
            self.finish()


class GcpLogHTTPMiddleware(BaseHTTPMiddleware):
    """Logs each request through GcpLog using the dispatch/call_next chain."""

    def __init__(self, app: ASGIApp, gcplog: GcpLog):
        super().__init__(app)
        self.gcplog = gcplog
        self.skip_paths = set(gcplog.settings.skip_paths_list)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.skip_paths:
            return await call_next(request)

        start_time = time.perf_counter()
        mirror = BodyMirror(self.gcplog.settings.body_capture_limit)

        try:
            response = await call_next(request)
        except Exception as exc:
            stack_trace = traceback.format_exc()
            response = PlainTextResponse("Internal Server Error", status_code=500)
            mirror.feed(response.body)
            mirror.finish()
            self._emit_after(
                response, request, mirror, start_time,
                error=exc, stack_trace=stack_trace, recovered=True,
            )
            return response

        response.body_iterator = mirror.stream(response.body_iterator)
        self._emit_after(response, request, mirror, start_time)
        return response

    def _capture(self, response: Response, mirror: BodyMirror) -> CapturedResponse:
        size = mirror.size
        if self.gcplog.settings.count_header_bytes:
            size += encoded_header_size(response.raw_headers)
        return CapturedResponse(
            status=response.status_code,
            size=size,
            body=bytes(mirror.body),
            body_truncated=mirror.truncated,
            header_committed=True,
        )

    def _log_request(
        self,
        request: Request,
        response: Response,
        mirror: BodyMirror,
        start_time: float,
        **build_kwargs: Any,
    ) -> None:
        finished_at = mirror.finished_at or time.perf_counter()
        try:
            record = self.gcplog.builder.build(
                request,
                self._capture(response, mirror),
                timedelta(seconds=finished_at - start_time),
                **build_kwargs,
            )
        except Exception as e:
            logger.error("Could not build log record for %s %s: %s", request.method, request.url.path, e)
            return
        self.gcplog.emit(record)

    def _emit_after(
        self,
        response: Response,
        request: Request,
        mirror: BodyMirror,
        start_time: float,
        **build_kwargs: Any,
    ) -> None:
        task = BackgroundTask(self._log_request, request, response, mirror, start_time, **build_kwargs)
        if response.background is None:
            response.background = task
            return
        response.background = BackgroundTasks(tasks=[response.background, task])
