"""
gcplog — Emitter Client
=========================

What:  GcpLog is the process-wide object that owns the sink and applies the
       emission policy. Middleware instances receive it by reference.
How:   Built once at startup from an explicit Settings object and closed
       once at shutdown. Each request's record is passed to emit().

Emission policy:
    INFO             → sink.write()
    WARNING / ERROR  → sink.write(), and sink.report() when
                       settings.environment == "production"

Emission failures are logged locally and dropped. Sink construction and
configuration failures are raised to the caller at startup.

Usage:
    gcplog = GcpLog(Settings(project_id="my-project", service_name="api"))
    app.add_middleware(GcpLogMiddleware, gcplog=gcplog)
    ...
    gcplog.close()
"""

import logging
import sys
import traceback
from typing import Any, Optional

from starlette.concurrency import run_in_threadpool

from gcplog.config import Settings
from gcplog.record import (
    ErrorBuilder,
    ErrorDetail,
    LogRecord,
    RecordBuilder,
    SummaryBuilder,
    UserExtractor,
)
from gcplog.severity import Severity
from gcplog.sinks import LogSink, create_sink
from gcplog.trace import TraceContext

logger = logging.getLogger(__name__)


class GcpLog:
    """
    Logging and error-reporting client shared by every request.

    Args:
        settings:        Validated on construction (ConfigurationError).
        sink:            Explicit sink; default is create_sink(settings),
                         which may raise SinkConstructionError.
        summary_builder: Overrides the default "<METHOD> <PATH>" summary.
        error_builder:   Overrides the default body-text error value.
        user_extractor:  Supplies the "user" label; default is empty.
    """

    def __init__(
        self,
        settings: Settings,
        sink: Optional[LogSink] = None,
        summary_builder: Optional[SummaryBuilder] = None,
        error_builder: Optional[ErrorBuilder] = None,
        user_extractor: Optional[UserExtractor] = None,
    ):
        settings.validate_required()
        self.settings = settings
        self.sink = sink if sink is not None else create_sink(settings)
        self.builder = RecordBuilder(
            project_id=settings.project_id,
            summary_builder=summary_builder,
            error_builder=error_builder,
            user_extractor=user_extractor,
        )
        self._closed = False

    @classmethod
    def from_env(cls, **kwargs: Any) -> "GcpLog":
        """Build a client from GCPLOG_* environment variables."""
        return cls(Settings(), **kwargs)

    @property
    def is_production(self) -> bool:
        return self.settings.is_production

    # ── Emission ──────────────────────────────────────────────────────────

    def emit(self, record: LogRecord) -> None:
        """Apply the emission policy to one record. Never raises."""
        try:
            self.sink.write(record)
        except Exception as e:
            logger.error("Could not write %s log entry: %s", record.severity.value, e)

        if record.severity.is_failure and self.is_production:
            try:
                self.sink.report(record)
            except Exception as e:
                logger.error("Could not report error: %s", e)

    async def emit_async(self, record: LogRecord) -> None:
        """emit() in the worker thread pool; sinks may block on I/O."""
        await run_in_threadpool(self.emit, record)

    # ── Out-of-band records (no request attached) ─────────────────────────

    def log(self, payload: Any, trace: Optional[TraceContext] = None, user: str = "") -> None:
        self.emit(LogRecord(severity=Severity.INFO, summary=payload, trace=trace, user=user))

    def warning(
        self,
        error: BaseException,
        stack_trace: Optional[str] = None,
        summary: Any = "",
        trace: Optional[TraceContext] = None,
        user: str = "",
    ) -> None:
        self._failure(Severity.WARNING, error, stack_trace, summary, trace, user)

    def error(
        self,
        error: BaseException,
        stack_trace: Optional[str] = None,
        summary: Any = "",
        trace: Optional[TraceContext] = None,
        user: str = "",
    ) -> None:
        self._failure(Severity.ERROR, error, stack_trace, summary, trace, user)

    def report_exception(self, summary: Any = "", trace: Optional[TraceContext] = None, user: str = "") -> None:
        """
        Log the exception currently being handled as an ERROR.

        Call from inside an `except` block; does nothing outside one.
        """
        error = sys.exc_info()[1]
        if error is None:
            return
        self._failure(Severity.ERROR, error, traceback.format_exc(), summary, trace, user)

    def _failure(
        self,
        severity: Severity,
        error: BaseException,
        stack_trace: Optional[str],
        summary: Any,
        trace: Optional[TraceContext],
        user: str,
    ) -> None:
        if stack_trace is None:
            # Caller's frames; drop _failure and warning()/error()
            stack_trace = "".join(traceback.format_stack()[:-2])
        detail = ErrorDetail(error=error, stack_trace=stack_trace)
        self.emit(LogRecord(severity=severity, summary=summary, trace=trace, error=detail, user=user))

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def close(self) -> None:
        """Flush and release the sink. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.sink.close()
        logger.info("gcplog client closed")

    def __enter__(self) -> "GcpLog":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
