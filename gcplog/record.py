"""
gcplog — Log Records and the Record Builder
=============================================

What:  The immutable LogRecord handed to sinks, and the RecordBuilder that
       assembles one from a finished request.
How:   RecordBuilder combines the request, the CapturedResponse, the latency
       and the trace context, classifies the status and, for WARNING/ERROR,
       derives an error value plus a Python traceback.

Pluggable functions (each has a default):
    summary_builder(request) -> Any
        default: "<METHOD> <PATH>", prefixed with "[<X-Request-ID>] "
    error_builder(request, captured) -> BaseException
        default: ResponseError(<body text> or "<METHOD> <PATH>")
    user_extractor(request) -> str
        default: ""
"""

import traceback
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from starlette.requests import Request

from gcplog.exceptions import ResponseError
from gcplog.interceptor import CapturedResponse
from gcplog.severity import Severity, classify
from gcplog.trace import TraceContext, trace_from_request

SummaryBuilder = Callable[[Request], Any]
ErrorBuilder = Callable[[Request, CapturedResponse], BaseException]
UserExtractor = Callable[[Request], str]

REQUEST_ID_HEADER = "X-Request-ID"

# Routes may store an exception here to name the error behind a 4xx/5xx
ERROR_STATE_KEY = "gcplog_error"


# ══════════════════════════════════════════════════════════════════════════
# Record Types
# ══════════════════════════════════════════════════════════════════════════

def format_latency(latency: timedelta) -> str:
    """Duration in the protobuf JSON form Cloud Logging expects ("0.012500s")."""
    return f"{latency.total_seconds():.6f}s"


@dataclass(frozen=True)
class HttpMetadata:
    """HTTP request/response descriptor attached to request-bound records."""

    method: str
    url: str
    status: int = 0
    request_size: int = 0
    response_size: int = 0
    latency: Optional[timedelta] = None
    user_agent: str = ""
    remote_ip: str = ""
    server_ip: str = ""
    referer: str = ""
    protocol: str = ""

    def to_api_repr(self) -> Dict[str, Any]:
        """Cloud Logging HttpRequest JSON; empty fields are omitted."""
        info: Dict[str, Any] = {
            "requestMethod": self.method,
            "requestUrl": self.url,
            "status": self.status,
            "requestSize": str(self.request_size) if self.request_size else "",
            "responseSize": str(self.response_size) if self.response_size else "",
            "userAgent": self.user_agent,
            "remoteIp": self.remote_ip,
            "serverIp": self.server_ip,
            "referer": self.referer,
            "protocol": self.protocol,
        }
        if self.latency is not None:
            info["latency"] = format_latency(self.latency)
        return {key: value for key, value in info.items() if value}


@dataclass(frozen=True)
class ErrorDetail:
    """An error value plus the stack trace it is reported with."""

    error: BaseException
    stack_trace: str = ""

    @property
    def message(self) -> str:
        return str(self.error)

    @property
    def report_message(self) -> str:
        """
        Traceback text in the shape Error Reporting parses:

            Traceback (most recent call last):
              File "...", line N, in fn
                ...
            ExceptionType: message
        """
        tail = "".join(traceback.format_exception_only(type(self.error), self.error))
        if not self.stack_trace:
            return tail.rstrip("\n")
        if self.stack_trace.startswith("Traceback"):
            return self.stack_trace.rstrip("\n")
        return ("Traceback (most recent call last):\n" + self.stack_trace + tail).rstrip("\n")


@dataclass(frozen=True)
class LogRecord:
    """
    One classified event.

    Invariants:
        error is set iff severity is WARNING or ERROR.
        http is set iff the record was produced from a request.
    """

    severity: Severity
    summary: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    http: Optional[HttpMetadata] = None
    trace: Optional[TraceContext] = None
    error: Optional[ErrorDetail] = None
    user: str = ""

    def __post_init__(self) -> None:
        if self.severity.is_failure and self.error is None:
            raise ValueError(f"{self.severity.value} records require an error")
        if not self.severity.is_failure and self.error is not None:
            raise ValueError("INFO records cannot carry an error")

    @property
    def payload(self) -> Any:
        """
        Entry payload: the summary for INFO, otherwise the error text
        prefixed with a string summary.
        """
        if self.error is None:
            return self.summary
        if isinstance(self.summary, str) and self.summary:
            return f"{self.summary}: {self.error.message}" if self.error.message else self.summary
        if self.summary:
            return self.summary
        return self.error.message

    @property
    def labels(self) -> Dict[str, str]:
        return {"user": self.user} if self.user else {}


# ══════════════════════════════════════════════════════════════════════════
# Defaults for the pluggable functions
# ══════════════════════════════════════════════════════════════════════════

def default_summary(request: Request) -> str:
    summary = f"{request.method} {request.url.path}"
    request_id = request.headers.get(REQUEST_ID_HEADER)
    if request_id:
        summary = f"[{request_id}] {summary}"
    return summary


def default_error(request: Request, captured: CapturedResponse) -> BaseException:
    text = captured.body_text
    if not text:
        text = f"{request.method} {request.url.path}"
    return ResponseError(text, status=captured.status)


def default_user(request: Request) -> str:
    return ""


def handler_error(request: Request) -> Optional[BaseException]:
    """The exception a route stored on request.state.gcplog_error, if any."""
    return getattr(request.state, ERROR_STATE_KEY, None)


def client_ip(request: Request) -> str:
    """X-Real-Ip, else the first X-Forwarded-For hop, else the socket peer."""
    real_ip = request.headers.get("X-Real-Ip", "").strip()
    if real_ip:
        return real_ip
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client else ""


def _content_length(request: Request) -> int:
    try:
        return max(int(request.headers.get("content-length", "0")), 0)
    except ValueError:
        return 0


def http_metadata(request: Request, captured: CapturedResponse, latency: timedelta) -> HttpMetadata:
    server = request.scope.get("server")
    return HttpMetadata(
        method=request.method,
        url=str(request.url),
        status=captured.status,
        request_size=_content_length(request),
        response_size=captured.size,
        latency=latency,
        user_agent=request.headers.get("user-agent", ""),
        remote_ip=client_ip(request),
        server_ip=server[0] if server else "",
        referer=request.headers.get("referer", ""),
        protocol=f"HTTP/{request.scope.get('http_version', '1.1')}",
    )


# ══════════════════════════════════════════════════════════════════════════
# Record Builder
# ══════════════════════════════════════════════════════════════════════════

class RecordBuilder:
    """
    Builds LogRecords for finished requests.

    Args:
        project_id:      Used to namespace trace ids; None leaves them raw.
        summary_builder: See module docstring.
        error_builder:   See module docstring.
        user_extractor:  See module docstring.
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        summary_builder: Optional[SummaryBuilder] = None,
        error_builder: Optional[ErrorBuilder] = None,
        user_extractor: Optional[UserExtractor] = None,
    ):
        self.project_id = project_id
        self.summary_builder = summary_builder or default_summary
        self.error_builder = error_builder or default_error
        self.user_extractor = user_extractor or default_user

    def build(
        self,
        request: Request,
        captured: CapturedResponse,
        latency: timedelta,
        error: Optional[BaseException] = None,
        stack_trace: Optional[str] = None,
        recovered: bool = False,
    ) -> LogRecord:
        """
        Build the record for one request.

        Args:
            request:     The inbound request.
            captured:    What the interceptor observed.
            latency:     Time from middleware entry to handler completion.
            error:       An explicit error for the request; otherwise the
                         route-reported error, then error_builder.
            stack_trace: Traceback text captured where `error` was caught.
            recovered:   True when `error` was raised by the handler and
                         absorbed by the middleware; forces ERROR.
        """
        severity = Severity.ERROR if recovered else classify(captured.status)

        detail = None
        if severity.is_failure:
            if error is None:
                error = handler_error(request)
            if error is None:
                error = self.error_builder(request, captured)
            if stack_trace is None:
                stack_trace = "".join(traceback.format_stack()[:-1])
            detail = ErrorDetail(error=error, stack_trace=stack_trace)

        return LogRecord(
            severity=severity,
            summary=self.summary_builder(request),
            http=http_metadata(request, captured, latency),
            trace=trace_from_request(request, self.project_id),
            error=detail,
            user=self.user_extractor(request) or "",
        )
