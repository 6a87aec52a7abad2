"""
gcplog — Trace Context Extraction
===================================

What:  Parses the X-Cloud-Trace-Context header into a TraceContext.
How:   Header format is TRACE_ID[/SPAN_ID][;o=TRACE_SAMPLED]. Every part is
       optional; a value that does not fit the whole format yields no trace.

Examples:
    "105445aa7843bc8bf206b12000100000/1;o=1"
        → trace_id="105445aa7843bc8bf206b12000100000", span_id="1", sampled=True
    "abc123/0;o=0"
        → trace_id="abc123", span_id="" (span 0 means "no span"), sampled=False
    "" or missing
        → TraceContext() (no trace)
"""

import re
from dataclasses import dataclass
from typing import Optional

from starlette.requests import Request

TRACE_HEADER = "X-Cloud-Trace-Context"

_TRACE_CONTEXT_RE = re.compile(
    r"(?P<trace>[0-9a-fA-F]*)(?:/(?P<span>[0-9a-fA-F]*))?(?:;o=(?P<sampled>\d))?"
)


@dataclass(frozen=True)
class TraceContext:
    """Immutable trace/span/sampled triple derived once per request."""

    trace_id: str = ""
    span_id: str = ""
    sampled: bool = False

    def __bool__(self) -> bool:
        return bool(self.trace_id)


def parse_trace_header(value: Optional[str], project_id: Optional[str] = None) -> TraceContext:
    """
    Parse an X-Cloud-Trace-Context header value.

    Args:
        value:      Raw header value; None or "" means no trace.
        project_id: When given, a non-empty trace id is rewritten to
                    "projects/<project_id>/traces/<trace_id>".

    Returns:
        TraceContext. Malformed input is not an error.
    """
    if not value:
        return TraceContext()

    match = _TRACE_CONTEXT_RE.fullmatch(value.strip())
    if match is None:
        return TraceContext()

    trace_id = match.group("trace") or ""
    span_id = match.group("span") or ""
    if span_id == "0":
        span_id = ""
    sampled = match.group("sampled") == "1"

    if trace_id and project_id:
        trace_id = f"projects/{project_id}/traces/{trace_id}"

    return TraceContext(trace_id=trace_id, span_id=span_id, sampled=sampled)


def trace_from_request(request: Request, project_id: Optional[str] = None) -> TraceContext:
    """Read and parse the trace header of an incoming request."""
    return parse_trace_header(request.headers.get(TRACE_HEADER), project_id)
