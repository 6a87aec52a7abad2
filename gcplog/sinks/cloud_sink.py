"""
gcplog — Cloud Logging / Error Reporting Sink
===============================================

What:  Sends records to Google Cloud Logging and error reports to Google
       Cloud Error Reporting through the official client libraries.
How:   Both clients are created once, when the sink is constructed, and are
       shared by every request. The client libraries handle transport,
       authentication and their own retries.

Entry mapping (Logger.log keyword arguments):
    severity       ← record.severity
    timestamp      ← record.timestamp
    trace          ← record.trace.trace_id            (when present)
    span_id        ← record.trace.span_id             (when present)
    trace_sampled  ← record.trace.sampled             (when a trace is present)
    http_request   ← record.http.to_api_repr()        (request-bound records)
    labels         ← {"user": record.user}            (when a user was extracted)
    resource       ← Resource(resource_type, {project_id, service_name})
"""

import logging
from typing import Any, Dict, Optional

from google.cloud import error_reporting
from google.cloud import logging as cloud_logging

from gcplog.config import Settings
from gcplog.exceptions import EmissionError, SinkConstructionError
from gcplog.record import LogRecord
from gcplog.sinks.base import LogSink

logger = logging.getLogger(__name__)


class CloudSink(LogSink):
    """
    Sink backed by google.cloud.logging and google.cloud.error_reporting.

    Raises:
        SinkConstructionError: when either client cannot be created
            (typically missing application-default credentials).
    """

    name = "cloud"

    def __init__(self, settings: Settings):
        self.project_id = settings.project_id
        self.service_name = settings.service_name

        try:
            self.logging_client = cloud_logging.Client(project=self.project_id)
        except Exception as e:
            raise SinkConstructionError(
                "logging",
                f"Failed to create logging client: {e}",
                context={"project_id": self.project_id},
            ) from e
        self.logger = self.logging_client.logger(self.service_name)

        try:
            self.error_client = error_reporting.Client(
                project=self.project_id,
                service=self.service_name,
            )
        except Exception as e:
            raise SinkConstructionError(
                "error_reporting",
                f"Failed to create error reporting client: {e}",
                context={"project_id": self.project_id},
            ) from e

        self.resource: Optional[cloud_logging.Resource] = None
        if settings.resource_type:
            self.resource = cloud_logging.Resource(
                type=settings.resource_type,
                labels={
                    "project_id": self.project_id,
                    "service_name": self.service_name,
                },
            )

        logger.info(
            "Cloud logging sink ready (project=%s, log=%s, resource=%s)",
            self.project_id,
            self.service_name,
            settings.resource_type or "default",
        )

    def entry_kwargs(self, record: LogRecord) -> Dict[str, Any]:
        """Keyword arguments for Logger.log() describing the record."""
        kwargs: Dict[str, Any] = {
            "severity": record.severity.value,
            "timestamp": record.timestamp,
        }
        if self.resource is not None:
            kwargs["resource"] = self.resource
        if record.trace:
            kwargs["trace"] = record.trace.trace_id
            kwargs["trace_sampled"] = record.trace.sampled
        if record.trace is not None and record.trace.span_id:
            kwargs["span_id"] = record.trace.span_id
        if record.http is not None:
            kwargs["http_request"] = record.http.to_api_repr()
        if record.labels:
            kwargs["labels"] = record.labels
        return kwargs

    def write(self, record: LogRecord) -> None:
        try:
            self.logger.log(record.payload, **self.entry_kwargs(record))
        except Exception as e:
            raise EmissionError(f"Failed to write log entry: {e}", context={"sink": self.name}) from e

    def report(self, record: LogRecord) -> None:
        if record.error is None:
            return
        http_context = None
        if record.http is not None:
            http_context = error_reporting.HTTPContext(
                method=record.http.method,
                url=record.http.url,
                user_agent=record.http.user_agent or None,
                referrer=record.http.referer or None,
                response_status_code=record.http.status or None,
                remote_ip=record.http.remote_ip or None,
            )
        try:
            self.error_client.report(
                record.error.report_message,
                http_context=http_context,
                user=record.user or None,
            )
        except Exception as e:
            raise EmissionError(f"Could not report error: {e}", context={"sink": self.name}) from e

    def close(self) -> None:
        failures = []
        for client in (self.logging_client, self.error_client):
            try:
                client.close()
            except Exception as e:
                failures.append(e)
        if failures:
            logger.warning("Failed to close client: %s", ", ".join(str(f) for f in failures))
