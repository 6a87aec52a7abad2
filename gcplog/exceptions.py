"""
gcplog — Exception Hierarchy
==============================

What:  Application-specific exceptions for the failure modes of the logging
       middleware.
How:   Each exception carries a human-readable message and an optional
       context dict. Configuration and sink construction errors are raised at
       startup; emission errors are raised by sinks and absorbed by the
       emitter client so they never reach an HTTP client.

Exception Hierarchy:
    GcpLogError (base)
    ├── ConfigurationError      → startup: project id / service name missing
    ├── SinkConstructionError   → startup: vendor client could not be built
    ├── EmissionError           → runtime: record could not be delivered
    └── ResponseError           → error value derived from a 4xx/5xx response
"""

from typing import Any, Dict, List, Optional


class GcpLogError(Exception):
    """
    Base exception for all gcplog errors.

    Attributes:
        message:  Human-readable error description
        context:  Additional debug info (field names, sink name, ...)
    """

    def __init__(
        self,
        message: str = "An unexpected gcplog error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ConfigurationError(GcpLogError):
    """
    Raised when required settings are missing or invalid.

    When:    Settings.validate_required() or GcpLog construction, before any
             request is served. The caller decides whether to abort startup.
    """

    def __init__(
        self,
        message: str = "gcplog is not correctly configured",
        missing: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if missing:
            ctx["missing"] = list(missing)
        super().__init__(message=message, context=ctx)
        self.missing = list(missing or [])


class SinkConstructionError(GcpLogError):
    """
    Raised when a logging or error-reporting client cannot be created.

    When:    CloudSink construction (missing credentials, unknown project,
             unreachable backend).
    """

    def __init__(
        self,
        sink: str,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["sink"] = sink
        super().__init__(message=message or f"Failed to create {sink} client", context=ctx)
        self.sink = sink


class EmissionError(GcpLogError):
    """
    Raised by a sink when a record could not be encoded or delivered.

    Never propagated past GcpLog.emit(): a failed log write must not fail the
    request it describes.
    """

    def __init__(
        self,
        message: str = "Failed to emit log record",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ResponseError(GcpLogError):
    """
    Error value describing a 4xx/5xx response.

    The default error builder creates one from the captured response body;
    str(error) is exactly that body text.
    """

    def __init__(
        self,
        message: str,
        status: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status:
            ctx["status"] = status
        super().__init__(message=message, context=ctx)
        self.status = status
