# Middleware package init
"""
gcplog — Middleware Package
=============================

Two adapters over the same pipeline (interceptor → trace → classify →
record → GcpLog.emit):

    GcpLogMiddleware      Pure ASGI; works with any ASGI application.
                          middleware(gcplog) gives the app → app form.
    GcpLogHTTPMiddleware  Starlette BaseHTTPMiddleware; dispatch/call_next
                          chain used by FastAPI applications.

Register the logger outermost (added last) so it observes the final status
and body produced by every inner middleware and exception handler.
"""

from gcplog.middleware.asgi import GcpLogMiddleware, ResponseNotStartedError, middleware
from gcplog.middleware.base_http import GcpLogHTTPMiddleware

__all__ = [
    "GcpLogHTTPMiddleware",
    "GcpLogMiddleware",
    "ResponseNotStartedError",
    "middleware",
]
