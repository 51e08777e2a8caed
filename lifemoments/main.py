"""Life Moments entry point — lifecycle for embedding the data layer in an app.

Invariants:
    - Logging is configured before storage is opened
    - The yielded service is initialized; it is disposed on exit even after errors

Design Decisions:
    - Async context manager (lifespan pattern): the UI shell owns the event loop,
      this module only brackets the service lifetime
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from lifemoments.config import Settings, get_settings
from lifemoments.infrastructure.observability import setup_logging
from lifemoments.services.moment_service import MomentService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_moment_service(settings: Settings | None = None) -> AsyncIterator[MomentService]:
    """Startup/shutdown lifecycle for one MomentService."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)
    service = MomentService.from_settings(settings)
    await service.init()
    logger.info("Life Moments started")
    try:
        yield service
    finally:
        await service.dispose()
        logger.info("Life Moments shut down")
