"""
gcplog — Local Diagnostics Logging
====================================

What:  Configures Python logging for gcplog's own diagnostics (sink
       failures, startup and shutdown messages).
How:   gcplog modules log through logging.getLogger(__name__). Applications
       that already configure logging can ignore this module;
       setup_logging() is a convenience for those that do not.

Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

Diagnostics go to stderr through a plain StreamHandler; they are not
structured entries and are not sent through the sink.
"""

import logging
import sys

NOISY_LOGGERS = (
    "google.auth",
    "google.api_core",
    "google.cloud.logging_v2.handlers.transports",
    "urllib3",
    "grpc",
)


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger for gcplog diagnostics.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

    # Client libraries log every request at DEBUG/INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
