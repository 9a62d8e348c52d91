"""
Automated task scheduler.

This module provides scheduled background jobs for:
- Pick settlement (resolver sweep over pending picks)
- Cache statistics logging

Scheduler: APScheduler (AsyncIOScheduler)
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.database import SessionLocal, init_db
from app.core.logging import correlation_scope
from app.core.metrics import update_scheduler_metrics
from app.services.core.bet_tracking_service import BetTrackingService
from app.services.core.cache import get_cache
from app.services.resolver_service import ResolverService

logger = logging.getLogger(__name__)

RESOLVER_JOB_ID = 'resolve_pending_picks'
CACHE_STATS_JOB_ID = 'cache_stats'


async def run_resolver_sweep() -> int:
    """
    Settle pending picks once, in its own DB session and correlation scope.

    Returns:
        Number of picks settled
    """
    with correlation_scope("resolve") as run_id:
        db = SessionLocal()
        try:
            resolver = ResolverService(store=BetTrackingService(db))
            settled = await resolver.resolve_all_pending()
            logger.info(f"Resolver sweep {run_id}: {settled} pick(s) settled")
            return settled
        finally:
            db.close()


def log_cache_stats():
    """Log shared cache hit/miss statistics."""
    stats = get_cache().stats()
    logger.info(
        f"Cache: {stats['hits']} hits, {stats['misses']} misses, "
        f"{stats['keys']} live keys ({stats['hit_rate']} hit rate)"
    )


class AutomationScheduler:
    """
    Main scheduler for automated background tasks.

    All scheduled jobs should be defined here with clear
    schedules and error handling.
    """

    def __init__(self, interval_minutes: Optional[int] = None):
        self.interval_minutes = interval_minutes or settings.RESOLVER_INTERVAL_MINUTES
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting automation scheduler...")
        init_db()

        self.scheduler = AsyncIOScheduler(
            timezone=settings.SCHEDULER_TIMEZONE,
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Only one instance of each job
                'misfire_grace_time': 300  # 5 minutes grace for misfires
            }
        )

        self._schedule_resolver()
        self._schedule_cache_stats()

        self.scheduler.start()
        self.running = True
        update_scheduler_metrics(True, len(self.scheduler.get_jobs()))

        logger.info("Scheduler started with %d jobs", len(self.scheduler.get_jobs()))
        self._log_scheduled_jobs()

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        self.running = False
        update_scheduler_metrics(False)
        logger.info("Scheduler stopped")

    def _schedule_resolver(self):
        """
        Schedule: Settle pending picks against final scores.

        Frequency: Every RESOLVER_INTERVAL_MINUTES (default 30)
        Purpose: Picks settle shortly after their games go final
        """
        if self.scheduler is None:
            return

        async def resolve_job():
            try:
                await run_resolver_sweep()
            except Exception as e:
                logger.error(f"Resolver sweep failed: {e}")

        self.scheduler.add_job(
            resolve_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=RESOLVER_JOB_ID,
            name='Resolve Pending Picks',
            replace_existing=True,
        )
        logger.info(f"Scheduled: Pick resolver (every {self.interval_minutes} min)")

    def _schedule_cache_stats(self):
        """
        Schedule: Log cache statistics.

        Frequency: Hourly
        """
        if self.scheduler is None:
            return

        self.scheduler.add_job(
            log_cache_stats,
            trigger=IntervalTrigger(hours=1),
            id=CACHE_STATS_JOB_ID,
            name='Log Cache Stats',
            replace_existing=True,
        )
        logger.info("Scheduled: Cache stats (hourly)")

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        for job in self.scheduler.get_jobs():
            next_run = job.next_run_time
            next_run_str = next_run.strftime('%Y-%m-%d %I:%M %p %Z') if next_run else 'Pending'
            logger.info(f"  {job.name} ({job.id}), next run: {next_run_str}")


# Global scheduler instance
_scheduler: Optional[AutomationScheduler] = None


async def start_scheduler() -> AutomationScheduler:
    """Start the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AutomationScheduler()
        await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[AutomationScheduler]:
    """Get the global scheduler instance."""
    return _scheduler
