"""
gcplog — Abstract Sink Interface
==================================

What:  The contract every destination for LogRecords implements.
How:   Concrete sinks implement write() (structured log entry) and report()
       (error-reporting event). GcpLog decides which of the two to call;
       sinks never apply the severity or production policy themselves.

Implementations:
    - CloudSink:      google-cloud-logging + google-cloud-error-reporting
    - StderrJsonSink: one JSON object per line on standard error
"""

from abc import ABC, abstractmethod

from gcplog.record import LogRecord


class LogSink(ABC):
    """
    Destination for finished LogRecords.

    Contract:
        - write() and report() may be called concurrently from the thread pool
        - failures are raised as EmissionError; GcpLog logs and drops them
        - close() flushes buffered state and releases handles; it is called
          exactly once, at shutdown
    """

    name = "sink"

    @abstractmethod
    def write(self, record: LogRecord) -> None:
        """Deliver a structured log entry for the record."""
        ...

    @abstractmethod
    def report(self, record: LogRecord) -> None:
        """
        Deliver an error report for a WARNING/ERROR record.

        The record's ErrorDetail supplies the error value and stack trace;
        its HttpMetadata (when present) supplies the request context.
        """
        ...

    def close(self) -> None:
        """Flush and release resources. Default: nothing to release."""
