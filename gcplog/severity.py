"""
gcplog — Outcome Classification
=================================

Maps a finished HTTP status code to a log severity:

    status <  400  → INFO
    400 ≤ status < 500 → WARNING
    status ≥  500  → ERROR

The thresholds are fixed. They mirror Cloud Logging's severity conventions and
decide which records are also sent to Error Reporting.
"""

import logging
from enum import Enum


class Severity(str, Enum):
    """Cloud Logging severity names used by gcplog."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @property
    def level(self) -> int:
        """Equivalent stdlib logging level."""
        return _LEVELS[self]

    @property
    def is_failure(self) -> bool:
        return self is not Severity.INFO


_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


def classify(status: int) -> Severity:
    """Classify a status code into INFO, WARNING or ERROR."""
    if status >= 500:
        return Severity.ERROR
    if status >= 400:
        return Severity.WARNING
    return Severity.INFO
