"""
gcplog — Sinks
================

Sink Inventory:
    - LogSink (abstract): write() log entries, report() errors, close()
    - CloudSink:          Cloud Logging + Error Reporting API clients
    - StderrJsonSink:     structured JSON lines on standard error

create_sink() picks the implementation named by Settings.sink.
"""

from gcplog.config import Settings
from gcplog.sinks.base import LogSink
from gcplog.sinks.stderr_sink import StderrJsonSink


def create_sink(settings: Settings) -> LogSink:
    """Build the sink selected by settings.sink ("cloud" or "stderr")."""
    if settings.sink == "stderr":
        return StderrJsonSink(service_name=settings.service_name)

    from gcplog.sinks.cloud_sink import CloudSink

    return CloudSink(settings)


__all__ = ["LogSink", "StderrJsonSink", "create_sink"]
