"""
APScheduler configuration for the daily cutoff job.

The job ticks every ``cutoff_check_interval_sec``; whether a tick actually
sweeps is decided by ``AutomationService.run_if_due`` against the persisted
checkpoint, so several app processes can run the scheduler safely.
"""

import logging
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.config import settings
from domain.models import SessionLocal
from services.automation_service import AutomationService

logger = logging.getLogger("mealpass.scheduler")

CUTOFF_JOB_ID = "daily_cutoff"


def run_cutoff_tick(session_factory: Callable = SessionLocal) -> None:
    """One scheduler tick with its own session"""
    db = session_factory()
    try:
        result = AutomationService.run_if_due(db)
        if result is not None:
            logger.info("Cutoff tick ran sweep: %s", result)
    except Exception:
        logger.exception("Cutoff tick failed")
    finally:
        db.close()


class SchedulerManager:
    """
    Manages the background scheduler lifecycle and job registration.
    """

    def __init__(self) -> None:
        self.scheduler: Optional[BackgroundScheduler] = None

    def initialize(self, interval_sec: Optional[int] = None) -> None:
        """
        Create the scheduler and register the cutoff job.

        Args:
            interval_sec: Tick interval (default: settings.cutoff_check_interval_sec)
        """
        if self.scheduler is not None:
            logger.warning("Scheduler already initialized")
            return

        self.scheduler = BackgroundScheduler(
            timezone=settings.business_timezone,
            job_defaults={
                "coalesce": True,  # Combine missed runs
                "max_instances": 1,  # One tick at a time
                "misfire_grace_time": 60,
            },
        )
        interval = interval_sec or settings.cutoff_check_interval_sec
        self.scheduler.add_job(
            run_cutoff_tick,
            trigger=IntervalTrigger(seconds=interval),
            id=CUTOFF_JOB_ID,
            name="Daily cutoff auto-lock",
            replace_existing=True,
        )
        logger.info("Cutoff job registered every %ss", interval)

    def start(self) -> None:
        """Start scheduler (begin executing jobs)."""
        if self.scheduler is None:
            raise RuntimeError("Scheduler not initialized")

        if self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler.start()
        logger.info("Scheduler started")

    def shutdown(self, wait: bool = True) -> None:
        """
        Shutdown scheduler gracefully.

        Args:
            wait: If True, wait for a running tick to complete
        """
        if self.scheduler is None or not self.scheduler.running:
            return

        self.scheduler.shutdown(wait=wait)
        logger.info("Scheduler shutdown (wait=%s)", wait)

    def get_jobs(self) -> list:
        """List scheduled jobs as plain dicts"""
        if self.scheduler is None:
            return []

        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": str(getattr(job, "next_run_time", None)),
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]


scheduler_manager = SchedulerManager()
