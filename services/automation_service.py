"""
Daily cutoff sweep.

Once the business clock passes the configured cutoff, tomorrow's undecided
days are filled with default meals where empty, snapshotted and locked for
the kitchen. The run is claimed through a persisted checkpoint so only one
process (and one tick) performs it per business day.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Optional
from sqlalchemy.orm import Session
import logging

from adapters import catalog_adapter
from app import clock
from domain.enums import DayStatus
from domain.models import SubscriptionDay, atomic
from repositories import (
    CUTOFF_CHECKPOINT_KEY,
    ActivityLogRepository,
    DayRepository,
    SettingRepository,
)
from services.notification_service import NotificationService
from services.settings_service import SettingsService
from services.snapshot_service import SnapshotService

logger = logging.getLogger("mealpass.automation")


class _DayMoved(Exception):
    """The day left `open` while the sweep was working on it."""


class AutomationService:
    @staticmethod
    def _lock_day(db: Session, day: SubscriptionDay, target: date) -> bool:
        """Auto-fill, snapshot and lock one day; False if someone else moved it first"""
        try:
            with atomic(db):
                AutomationService._fill_and_lock(db, day, target)
        except _DayMoved:
            return False
        return True

    @staticmethod
    def _fill_and_lock(db: Session, day: SubscriptionDay, target: date) -> None:
        sub = day.subscription
        day_repo = DayRepository(db)
        if not day.selections and not day.premium_selections:
            meals = catalog_adapter.get_default_meals(sub.meals_per_day)
            if meals:
                logger.info("Auto-assigning %d meals to day %s", len(meals), day.day_id)
                day_repo.update_open_day(
                    day.day_id,
                    selections=[str(m["_id"]) for m in meals],
                    assigned_by_kitchen=True,
                )

        SnapshotService.ensure_locked_snapshot(db, sub, day)
        if not day_repo.transition(day.day_id, [DayStatus.OPEN], DayStatus.LOCKED):
            raise _DayMoved()

        ActivityLogRepository(db).write(
            "subscription_day",
            day.day_id,
            "auto_lock",
            meta={"date": target.isoformat()},
        )

    @staticmethod
    def process_daily_cutoff(db: Session, today: Optional[date] = None) -> Dict[str, int]:
        """
        Lock every open day dated tomorrow on an active subscription.

        Each day is its own transaction; a failing day is logged and the
        sweep moves on.

        Returns:
            {"date", "candidates", "locked", "skipped", "failed"}
        """
        target = (today or clock.today()) + timedelta(days=1)
        days = DayRepository(db).list_open_for_date(target)
        logger.info("Cutoff sweep start for %s: %d open days", target, len(days))

        counts = {"candidates": len(days), "locked": 0, "skipped": 0, "failed": 0}
        for day in days:
            day_id = day.day_id
            try:
                locked = AutomationService._lock_day(db, day, target)
            except Exception:
                logger.exception("Auto-lock failed for day %s", day_id)
                counts["failed"] += 1
                continue

            if not locked:
                logger.info("Day %s changed during sweep; left as is", day_id)
                counts["skipped"] += 1
                continue

            counts["locked"] += 1
            NotificationService.notify(
                db,
                day.subscription.user_id,
                "Your order for tomorrow is confirmed",
                "Meal selections are locked and preparation has started",
                {"subscription_id": day.subscription_id, "date": target.isoformat()},
            )

        logger.info(
            "Cutoff sweep finished for %s: locked=%d skipped=%d failed=%d",
            target,
            counts["locked"],
            counts["skipped"],
            counts["failed"],
        )
        return {"date": target.isoformat(), **counts}

    @staticmethod
    def run_if_due(db: Session, now: Optional[datetime] = None) -> Optional[Dict[str, int]]:
        """
        Scheduler tick: run the sweep once per business day after cutoff.

        Returns the sweep counts, or None when not due or already claimed.
        """
        if not clock.has_reached_cutoff(SettingsService.cutoff_time(db), now):
            return None

        today = clock.today(now)
        run_date = today.isoformat()
        setting_repo = SettingRepository(db)
        with atomic(db):
            previous = setting_repo.get_value(CUTOFF_CHECKPOINT_KEY)
            claimed = setting_repo.claim_daily_run(run_date)
        if not claimed:
            return None

        logger.info("Cutoff checkpoint claimed for %s", run_date)
        try:
            return AutomationService.process_daily_cutoff(db, today)
        except Exception:
            logger.exception("Cutoff sweep for %s failed; releasing checkpoint", run_date)
            with atomic(db):
                setting_repo.release_daily_run(run_date, previous)
            raise
