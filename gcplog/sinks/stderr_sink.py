"""
gcplog — Structured stderr Sink
=================================

What:  Writes each record as one JSON line on standard error, in the shape
       Cloud Logging's agents ingest as a structured LogEntry.
How:   No API client is involved; the runtime (Cloud Run, GKE, Cloud
       Functions) collects stderr and maps the special keys below.

Log line format:
    {
        "severity": "WARNING",
        "message": "GET /items/1: not found",
        "httpRequest": {"requestMethod": "GET", "requestUrl": "...", "status": 404, ...},
        "timestamp": "2024-01-15T12:00:00.000000+00:00",
        "logging.googleapis.com/labels": {"user": "alice"},
        "logging.googleapis.com/trace": "projects/p/traces/abc123",
        "logging.googleapis.com/spanId": "456",
        "logging.googleapis.com/trace_sampled": true
    }

Error reports are written as ReportedErrorEvent lines ("@type" key), which
Error Reporting picks up from the same stream.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional, TextIO

from gcplog.exceptions import EmissionError
from gcplog.record import LogRecord
from gcplog.sinks.base import LogSink

logger = logging.getLogger(__name__)

LABELS_KEY = "logging.googleapis.com/labels"
TRACE_KEY = "logging.googleapis.com/trace"
SPAN_KEY = "logging.googleapis.com/spanId"
SAMPLED_KEY = "logging.googleapis.com/trace_sampled"
REPORTED_ERROR_EVENT = (
    "type.googleapis.com/google.devtools.clouderrorreporting.v1beta1.ReportedErrorEvent"
)


class StderrJsonSink(LogSink):
    """
    Sink that emits structured JSON lines.

    Args:
        service_name: Reported as serviceContext.service on error events.
        stream:       Target stream; defaults to sys.stderr at write time.
    """

    name = "stderr"

    def __init__(self, service_name: str = "", stream: Optional[TextIO] = None):
        self.service_name = service_name
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def entry(self, record: LogRecord) -> Dict[str, Any]:
        """The JSON object written for a record; empty fields are omitted."""
        entry: Dict[str, Any] = {
            "severity": record.severity.value,
            "message": record.payload,
        }
        if record.http is not None:
            entry["httpRequest"] = record.http.to_api_repr()
        entry["timestamp"] = record.timestamp.isoformat()
        if record.labels:
            entry[LABELS_KEY] = record.labels
        if record.trace:
            entry[TRACE_KEY] = record.trace.trace_id
            if record.trace.sampled:
                entry[SAMPLED_KEY] = True
        if record.trace is not None and record.trace.span_id:
            entry[SPAN_KEY] = record.trace.span_id
        return entry

    def error_event(self, record: LogRecord) -> Dict[str, Any]:
        event = self.entry(record)
        event["@type"] = REPORTED_ERROR_EVENT
        event["message"] = record.error.report_message if record.error else record.payload
        if self.service_name:
            event["serviceContext"] = {"service": self.service_name}
        context: Dict[str, Any] = {}
        if record.http is not None:
            context["httpRequest"] = {
                key: value
                for key, value in {
                    "method": record.http.method,
                    "url": record.http.url,
                    "userAgent": record.http.user_agent,
                    "referrer": record.http.referer,
                    "responseStatusCode": record.http.status,
                    "remoteIp": record.http.remote_ip,
                }.items()
                if value
            }
        if record.user:
            context["user"] = record.user
        if context:
            event["context"] = context
        return event

    def _emit(self, obj: Dict[str, Any]) -> None:
        try:
            line = json.dumps(obj, default=str)
            self.stream.write(line + "\n")
            self.stream.flush()
        except (TypeError, ValueError, OSError) as e:
            raise EmissionError(
                f"failure to write structured log entry: {e}", context={"sink": self.name}
            ) from e

    def write(self, record: LogRecord) -> None:
        self._emit(self.entry(record))

    def report(self, record: LogRecord) -> None:
        if record.error is None:
            return
        self._emit(self.error_event(record))

    def close(self) -> None:
        try:
            self.stream.flush()
        except (OSError, ValueError) as e:
            logger.warning("Failed to flush stderr sink: %s", e)
