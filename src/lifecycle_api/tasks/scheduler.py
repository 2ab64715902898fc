"""Background task scheduler using APScheduler."""

import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from lifecycle_api.config import get_settings

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def process_scheduled_offboardings_job() -> None:
    """Background job starting offboarding workflows whose exit date has passed."""
    from lifecycle_api.database import async_session_maker
    from lifecycle_api.dependencies import build_account_service
    from lifecycle_api.repositories import Repositories
    from lifecycle_api.services.offboarding_service import OffboardingService

    logger.info("Processing scheduled offboardings")

    async with async_session_maker() as session:
        try:
            repos = Repositories.from_session(session)
            service = OffboardingService(repos, build_account_service(repos))
            started = await service.process_scheduled()
            await session.commit()
            logger.info("Scheduled offboarding run completed: %d workflow(s) started", len(started))
        except Exception as e:
            logger.error("Scheduled offboarding run failed: %s", e)
            await session.rollback()


async def start_scheduler() -> None:
    """Start the background task scheduler."""
    global _scheduler

    settings = get_settings()
    _scheduler = AsyncIOScheduler()

    _scheduler.add_job(
        process_scheduled_offboardings_job,
        trigger=IntervalTrigger(minutes=settings.offboarding_schedule_interval_minutes),
        id="process_scheduled_offboardings",
        name="Process scheduled offboardings",
        replace_existing=True,
        next_run_time=datetime.now(),  # Run immediately on startup
    )

    _scheduler.start()
    logger.info("Background scheduler started")


async def stop_scheduler() -> None:
    """Stop the background task scheduler."""
    global _scheduler

    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Background scheduler stopped")
