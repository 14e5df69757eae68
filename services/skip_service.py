from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
import enum
import logging
import uuid

from app import clock
from app.clock import parse_day_date
from app.exceptions import (
    ConflictError,
    InsufficientCreditsError,
    NotFoundError,
    ServiceError,
    ServiceValidationError,
)
from domain.day_state import TERMINAL_STATUSES, can_transition
from domain.enums import DayStatus
from domain.models import Subscription, SubscriptionDay, atomic
from repositories import ActivityLogRepository, DayRepository, SubscriptionRepository
from services import validation
from services.credit_ledger import CreditLedger
from services.settings_service import SettingsService

logger = logging.getLogger("mealpass.skip")

_SKIPPABLE_WHEN_LOCKED = [s for s in DayStatus if s not in TERMINAL_STATUSES]


class SkipStatus(str, enum.Enum):
    ALREADY_SKIPPED = "already_skipped"
    FULFILLED = "fulfilled"
    LOCKED = "locked"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    SKIPPED = "skipped"


@dataclass
class SkipOutcome:
    status: SkipStatus
    day: Optional[SubscriptionDay] = None
    compensated_date: Optional[date] = None


class _LostRace(Exception):
    """The guarded day write matched no row."""


class SkipService:
    @staticmethod
    def apply_skip_for_date(
        db: Session,
        subscription: Subscription,
        day_date: date,
        allow_locked: bool = False,
    ) -> SkipOutcome:
        """
        Skip one day of a subscription and charge its meals.

        The day transition, the debit and the compensation run as one unit:
        a failed debit leaves the day exactly as it was. ``allow_locked`` lets
        courier cancellation skip a day that is already past lock.

        Args:
            db: Database session
            subscription: Active subscription (plan loaded)
            day_date: Calendar date to skip
            allow_locked: Permit skipping any non-terminal day

        Returns:
            SkipOutcome tagged with already_skipped, fulfilled, locked,
            insufficient_credits or skipped
        """
        day_repo = DayRepository(db)
        subscription_id = subscription.subscription_id
        meals_per_day = subscription.meals_per_day

        day = day_repo.get_for_date(subscription_id, day_date)
        if day is not None:
            if day.status == DayStatus.SKIPPED.value:
                return SkipOutcome(SkipStatus.ALREADY_SKIPPED, day=day)
            if day.status == DayStatus.FULFILLED.value:
                return SkipOutcome(SkipStatus.FULFILLED, day=day)
            if not allow_locked and not can_transition(day.status, DayStatus.SKIPPED):
                return SkipOutcome(SkipStatus.LOCKED, day=day)

        try:
            with atomic(db):
                if day is None:
                    day = day_repo.create_day(
                        subscription_id,
                        day_date,
                        status=DayStatus.SKIPPED.value,
                        credits_deducted=True,
                    )
                    if day is None:
                        raise _LostRace()
                else:
                    from_statuses = (
                        _SKIPPABLE_WHEN_LOCKED if allow_locked else [DayStatus.OPEN]
                    )
                    if not day_repo.transition(
                        day.day_id, from_statuses, DayStatus.SKIPPED, credits_deducted=True
                    ):
                        raise _LostRace()

                CreditLedger.debit(db, subscription_id, meals_per_day, count_skip=True)
                compensated = SkipService._compensate(db, subscription)
        except InsufficientCreditsError:
            logger.info(
                "Skip of %s for subscription %s refused: insufficient credits",
                day_date,
                subscription_id,
            )
            return SkipOutcome(SkipStatus.INSUFFICIENT_CREDITS)
        except _LostRace:
            current = day_repo.get_for_date(subscription_id, day_date)
            if current is not None:
                db.refresh(current)
            if allow_locked and current is not None and current.status == DayStatus.FULFILLED.value:
                return SkipOutcome(SkipStatus.FULFILLED, day=current)
            return SkipOutcome(SkipStatus.LOCKED, day=current)

        return SkipOutcome(SkipStatus.SKIPPED, day=day, compensated_date=compensated)

    @staticmethod
    def _compensate(db: Session, subscription: Subscription) -> Optional[date]:
        """Extend validity by one day while the skip count is within the plan allowance"""
        sub_repo = SubscriptionRepository(db)
        skipped = sub_repo.get_skipped_count(subscription.subscription_id)
        allowance = subscription.plan.skip_allowance or 0
        if skipped > allowance:
            return None

        new_end = sub_repo.extend_validity(subscription, fallback=clock.today())
        DayRepository(db).get_or_create(subscription.subscription_id, new_end)
        logger.info(
            "Subscription %s compensated: skip %s/%s, validity now ends %s",
            subscription.subscription_id,
            skipped,
            allowance,
            new_end,
        )
        return new_end

    # ------------------------------------------------------------------
    # Client flows
    # ------------------------------------------------------------------

    @staticmethod
    def _get_subscription(db: Session, subscription_id: uuid.UUID) -> Subscription:
        subscription = SubscriptionRepository(db).get_by_id(subscription_id)
        if not subscription:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        return subscription

    @staticmethod
    def skip_day(
        db: Session,
        subscription_id: uuid.UUID,
        day_date,
        user_id: Optional[uuid.UUID] = None,
    ) -> SkipOutcome:
        """
        Client skip of a single future day.

        Raises:
            ServiceValidationError: Malformed date, date outside the editable
                window, or tomorrow after cutoff (LOCKED)
            NotFoundError: If the subscription does not exist
            SubscriptionInactiveError: If not active or expired
            ConflictError: LOCKED if the day is past lock
            InsufficientCreditsError: If the balance cannot cover the day
        """
        day_date = parse_day_date(day_date)
        subscription = SkipService._get_subscription(db, subscription_id)
        validation.ensure_active(subscription, day_date)
        validation.validate_future_date(subscription, day_date)
        validation.ensure_before_cutoff(db, day_date)

        try:
            with atomic(db):
                outcome = SkipService.apply_skip_for_date(db, subscription, day_date)
                if outcome.status in (SkipStatus.LOCKED, SkipStatus.FULFILLED):
                    raise ConflictError("Cannot skip after lock", code="LOCKED")
                if outcome.status == SkipStatus.INSUFFICIENT_CREDITS:
                    raise InsufficientCreditsError("Not enough credits")
                if outcome.status == SkipStatus.SKIPPED:
                    ActivityLogRepository(db).write(
                        "subscription_day",
                        outcome.day.day_id,
                        "skip",
                        by_role="client",
                        by_user_id=user_id,
                        meta={
                            "date": day_date.isoformat(),
                            "compensated": outcome.compensated_date is not None,
                        },
                    )
        except ServiceError:
            raise
        except Exception:
            logger.exception("Error skipping %s for subscription %s", day_date, subscription_id)
            raise

        logger.info(
            "Day %s of subscription %s: %s", day_date, subscription_id, outcome.status.value
        )
        return outcome

    @staticmethod
    def skip_range(
        db: Session,
        subscription_id: uuid.UUID,
        start_date,
        days: int,
        user_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """
        Skip ``days`` consecutive dates starting at ``start_date``.

        Each date is decided independently; a rejected date never undoes an
        accepted one.

        Returns:
            Summary with skipped_dates, compensated_dates_added,
            already_skipped and rejected [{date, reason}]
        """
        start = parse_day_date(start_date)
        if isinstance(days, bool) or not isinstance(days, int) or days <= 0:
            raise ServiceValidationError("Invalid days count", code="INVALID")

        subscription = SkipService._get_subscription(db, subscription_id)
        validation.ensure_active(subscription)

        tomorrow = clock.tomorrow()
        cutoff_passed = not clock.is_before_cutoff(SettingsService.cutoff_time(db))
        base_end = validation.validity_end(subscription)
        summary: Dict[str, Any] = {
            "skipped_dates": [],
            "compensated_dates_added": [],
            "already_skipped": [],
            "rejected": [],
        }
        reasons = {
            SkipStatus.LOCKED: "LOCKED",
            SkipStatus.FULFILLED: "LOCKED",
            SkipStatus.INSUFFICIENT_CREDITS: "INSUFFICIENT_CREDITS",
        }

        try:
            with atomic(db):
                activity_repo = ActivityLogRepository(db)
                for offset in range(days):
                    current = start + timedelta(days=offset)
                    iso = current.isoformat()
                    if current < tomorrow:
                        summary["rejected"].append({"date": iso, "reason": "BEFORE_TOMORROW"})
                        continue
                    if base_end is not None and current > base_end:
                        summary["rejected"].append({"date": iso, "reason": "OUTSIDE_VALIDITY"})
                        continue
                    if current == tomorrow and cutoff_passed:
                        summary["rejected"].append({"date": iso, "reason": "CUTOFF_PASSED"})
                        continue

                    outcome = SkipService.apply_skip_for_date(db, subscription, current)
                    if outcome.status == SkipStatus.ALREADY_SKIPPED:
                        summary["already_skipped"].append(iso)
                        continue
                    if outcome.status != SkipStatus.SKIPPED:
                        summary["rejected"].append({"date": iso, "reason": reasons[outcome.status]})
                        continue

                    summary["skipped_dates"].append(iso)
                    if outcome.compensated_date is not None:
                        summary["compensated_dates_added"].append(
                            outcome.compensated_date.isoformat()
                        )
                    activity_repo.write(
                        "subscription_day",
                        outcome.day.day_id,
                        "skip",
                        by_role="client",
                        by_user_id=user_id,
                        meta={"date": iso, "compensated": outcome.compensated_date is not None},
                    )
        except Exception:
            logger.exception("Error skipping range from %s for subscription %s", start, subscription_id)
            raise

        logger.info(
            "Skip range for subscription %s: %d skipped, %d rejected",
            subscription_id,
            len(summary["skipped_dates"]),
            len(summary["rejected"]),
        )
        return summary
