"""
Manual / scheduled event ingestion job.

Runs the same ingestion trigger the suggestion pipeline falls back to when
the event pool is empty, so operators can refresh events ahead of demand
(e.g. from cron via the worker CLI).
"""

import asyncio

from app.config import settings
from app.features.event_suggestions.services.ingestion import IngestionTrigger, ingestion_trigger
from app.infrastructure.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def run_event_ingestion(trigger: IngestionTrigger = ingestion_trigger) -> None:
    """Run one ingestion; IngestionFailedError propagates so the worker exits non-zero."""
    logger.info("Event ingestion job started")
    await trigger.ingest()
    logger.info("Event ingestion job completed")


if __name__ == "__main__":
    setup_logging(log_level=settings.LOG_LEVEL)
    asyncio.run(run_event_ingestion())
