"""
gcplog — Application Lifespan Integration
===========================================

What:  A Starlette/FastAPI `lifespan` that ties the GcpLog client to the
       application's startup and shutdown.
How:   The client itself is built before the app (construction failures
       abort startup); the lifespan logs readiness and closes the client,
       flushing the sink, when the server shuts down.

Usage:
    gcplog = GcpLog.from_env()
    app = FastAPI(lifespan=gcplog_lifespan(gcplog, configure_logging=True))
    app.add_middleware(GcpLogMiddleware, gcplog=gcplog)
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncContextManager, Callable

from gcplog.client import GcpLog
from gcplog.log import setup_logging

logger = logging.getLogger(__name__)


def gcplog_lifespan(
    gcplog: GcpLog, configure_logging: bool = False
) -> Callable[[Any], AsyncContextManager[None]]:
    """
    Build a lifespan function owning `gcplog`.

    Args:
        gcplog:            The client to close on shutdown.
        configure_logging: Run setup_logging() with settings.log_level first.
    """

    @asynccontextmanager
    async def lifespan(app: Any) -> AsyncGenerator[None, None]:
        # ── Startup ───────────────────────────────────────────────────────
        if configure_logging:
            setup_logging(gcplog.settings.log_level)
        logger.info(
            "gcplog ready: project=%s service=%s sink=%s production=%s",
            gcplog.settings.project_id,
            gcplog.settings.service_name,
            gcplog.sink.name,
            gcplog.is_production,
        )

        try:
            yield
        finally:
            # ── Shutdown ──────────────────────────────────────────────────
            gcplog.close()

    return lifespan
