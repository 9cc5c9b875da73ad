"""APScheduler integration for resuming interrupted pipeline runs.

A run interrupted by a crash or restart leaves its job queued or
processing. The recovery job periodically picks those up and resumes them
from their last persisted step.
"""

from contextlib import asynccontextmanager
from datetime import UTC, timedelta
from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from legalmemo.config import settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from legalmemo.pipeline.processor import MeetingProcessor

logger = structlog.get_logger()

RECOVERY_JOB_ID = "pipeline_recovery_scanner"

_scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone=UTC)
    return _scheduler


def reset_scheduler() -> None:
    """Reset the scheduler instance (for testing)."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
    _scheduler = None


@asynccontextmanager
async def recovery_scheduler_lifespan(
    processor: "MeetingProcessor",
) -> "AsyncGenerator[None, None]":
    """Run the stalled-meeting scanner for the lifetime of the context.

    Usage:
        async with recovery_scheduler_lifespan(processor):
            yield
    """
    scheduler = get_scheduler()
    scheduler.add_job(
        scan_for_stalled_meetings,
        "interval",
        minutes=settings.recovery_scan_minutes,
        args=[processor],
        id=RECOVERY_JOB_ID,
        replace_existing=True,
        max_instances=1,
    )

    logger.info("Starting recovery scheduler")
    scheduler.start()

    try:
        yield
    finally:
        logger.info("Shutting down recovery scheduler")
        scheduler.shutdown(wait=False)


async def scan_for_stalled_meetings(processor: "MeetingProcessor") -> int:
    """Scheduled job: resume meetings whose job has not moved recently.

    Returns:
        Number of meetings resumed
    """
    try:
        resumed = await processor.resume_stalled(
            timedelta(minutes=settings.recovery_stale_after_minutes)
        )
    except Exception as e:
        logger.error("Recovery scan failed", error=str(e))
        return 0
    if resumed:
        logger.info("Resumed stalled meetings", count=resumed)
    return resumed
