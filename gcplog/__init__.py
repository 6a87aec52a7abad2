"""
gcplog — Google Cloud Request Logging for ASGI Applications
=============================================================

What:  Middleware that logs every HTTP request to Google Cloud Logging with a
       severity derived from its status code, and reports 4xx/5xx outcomes
       and unhandled exceptions to Error Reporting in production.

Pipeline (one pass per request):
    ResponseInterceptor → parse_trace_header → classify → RecordBuilder → GcpLog.emit

Package layout:
    config.py       Settings (pydantic-settings, GCPLOG_* variables)
    exceptions.py   GcpLogError hierarchy
    interceptor.py  ResponseInterceptor / CapturedResponse
    trace.py        X-Cloud-Trace-Context parsing
    severity.py     Severity + classify()
    record.py       LogRecord + RecordBuilder
    sinks/          CloudSink (API clients), StderrJsonSink (JSON lines)
    client.py       GcpLog emitter client
    middleware/     ASGI and BaseHTTPMiddleware adapters
    lifespan.py     startup/shutdown integration
    log.py          local diagnostics logging
"""

from gcplog.client import GcpLog
from gcplog.config import Settings
from gcplog.exceptions import (
    ConfigurationError,
    EmissionError,
    GcpLogError,
    ResponseError,
    SinkConstructionError,
)
from gcplog.interceptor import CapturedResponse, ResponseInterceptor
from gcplog.lifespan import gcplog_lifespan
from gcplog.middleware import GcpLogHTTPMiddleware, GcpLogMiddleware, middleware
from gcplog.record import ErrorDetail, HttpMetadata, LogRecord, RecordBuilder
from gcplog.severity import Severity, classify
from gcplog.trace import TraceContext, parse_trace_header

__version__ = "1.0.0"

__all__ = [
    "CapturedResponse",
    "ConfigurationError",
    "EmissionError",
    "ErrorDetail",
    "GcpLog",
    "GcpLogError",
    "GcpLogHTTPMiddleware",
    "GcpLogMiddleware",
    "HttpMetadata",
    "LogRecord",
    "RecordBuilder",
    "ResponseError",
    "ResponseInterceptor",
    "Settings",
    "Severity",
    "SinkConstructionError",
    "TraceContext",
    "classify",
    "gcplog_lifespan",
    "middleware",
    "parse_trace_header",
]
