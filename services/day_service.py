from typing import List, Optional
from sqlalchemy.orm import Session
import logging
import uuid

from app import clock
from app.clock import parse_day_date
from app.exceptions import (
    ConflictError,
    NotFoundError,
    ServiceError,
    ServiceValidationError,
)
from domain.day_state import can_transition
from domain.enums import DayStatus, DeliveryMode
from domain.models import Subscription, SubscriptionDay, atomic
from repositories import ActivityLogRepository, DayRepository, SubscriptionRepository
from services import validation
from services.credit_ledger import CreditLedger
from services.settings_service import SettingsService
from services.snapshot_service import SnapshotService

logger = logging.getLogger("mealpass.days")


def _get_subscription(db: Session, subscription_id: uuid.UUID) -> Subscription:
    subscription = SubscriptionRepository(db).get_by_id(subscription_id)
    if not subscription:
        raise NotFoundError(f"Subscription not found: {subscription_id}")
    return subscription


def _check_window(db: Session, window: Optional[str]) -> None:
    windows = SettingsService.delivery_windows(db)
    if window and windows and window not in windows:
        raise ServiceValidationError("Invalid delivery window", code="INVALID")


class DayService:
    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def get_subscription(db: Session, subscription_id: uuid.UUID) -> Subscription:
        return _get_subscription(db, subscription_id)

    @staticmethod
    def list_subscriptions(db: Session, user_id: uuid.UUID) -> List[Subscription]:
        return SubscriptionRepository(db).get_by_user_id(user_id)

    @staticmethod
    def get_days(db: Session, subscription_id: uuid.UUID) -> List[SubscriptionDay]:
        _get_subscription(db, subscription_id)
        return DayRepository(db).list_for_subscription(subscription_id)

    @staticmethod
    def get_day(db: Session, subscription_id: uuid.UUID, day_date) -> SubscriptionDay:
        day = DayRepository(db).get_for_date(subscription_id, parse_day_date(day_date))
        if day is None:
            raise NotFoundError("Day not found")
        return day

    @staticmethod
    def get_today(db: Session, subscription_id: uuid.UUID) -> SubscriptionDay:
        return DayService.get_day(db, subscription_id, clock.today())

    # ------------------------------------------------------------------
    # Client edits on open days
    # ------------------------------------------------------------------

    @staticmethod
    def update_selection(
        db: Session,
        subscription_id: uuid.UUID,
        day_date,
        selections: List[str],
        premium_selections: Optional[List[str]] = None,
        addons_one_time: Optional[List[str]] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> SubscriptionDay:
        """
        Replace a future day's meal choices.

        Premium credits move with the premium selection count: adding premium
        meals debits the difference (refused without balance), removing them
        refunds it. Resubmitting the current choices is a no-op.

        Raises:
            NotFoundError: Subscription missing
            SubscriptionInactiveError: Not active or expired
            ServiceValidationError: INVALID_DATE, LOCKED (cutoff), DAILY_CAP
            ConflictError: LOCKED if the day is no longer open
            InsufficientCreditsError: INSUFFICIENT_PREMIUM
        """
        day_date = parse_day_date(day_date)
        selections = list(selections or [])
        premium_selections = list(premium_selections or [])

        sub = _get_subscription(db, subscription_id)
        validation.ensure_active(sub, day_date)
        validation.validate_future_date(sub, day_date)
        validation.ensure_before_cutoff(db, day_date)
        if len(selections) + len(premium_selections) > sub.meals_per_day:
            raise ServiceValidationError("Selections exceed meals per day", code="DAILY_CAP")

        day_repo = DayRepository(db)
        existing = day_repo.get_for_date(subscription_id, day_date)
        if existing is not None and existing.status != DayStatus.OPEN.value:
            raise ConflictError("Day is locked", code="LOCKED")

        try:
            with atomic(db):
                # Premium diff is taken from the locked row, not the read above
                day, _ = day_repo.get_or_create(subscription_id, day_date, with_lock=True)
                if day.status != DayStatus.OPEN.value:
                    raise ConflictError("Day is locked", code="LOCKED")
                if (
                    set(day.selections or []) == set(selections)
                    and set(day.premium_selections or []) == set(premium_selections)
                    and addons_one_time is None
                ):
                    return day

                diff = len(premium_selections) - len(day.premium_selections or [])
                if diff > 0:
                    CreditLedger.debit_premium(db, subscription_id, diff)
                elif diff < 0:
                    CreditLedger.credit_premium(db, subscription_id, -diff)

                values = {"selections": selections, "premium_selections": premium_selections}
                if addons_one_time is not None:
                    values["addons_one_time"] = list(addons_one_time)
                if not day_repo.update_open_day(day.day_id, **values):
                    raise ConflictError("Day is locked", code="LOCKED")

                ActivityLogRepository(db).write(
                    "subscription_day",
                    day.day_id,
                    "day_selection_update",
                    by_role="client",
                    by_user_id=user_id,
                    meta={
                        "date": day_date.isoformat(),
                        "selections_count": len(selections),
                        "premium_count": len(premium_selections),
                    },
                )
        except ServiceError:
            raise
        except Exception:
            logger.exception("Selection update failed for %s on %s", subscription_id, day_date)
            raise

        return day

    @staticmethod
    def update_delivery_override(
        db: Session,
        subscription_id: uuid.UUID,
        day_date,
        delivery_address: Optional[dict] = None,
        delivery_window: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> SubscriptionDay:
        """Set a per-day delivery address/window override on an open day"""
        day_date = parse_day_date(day_date)
        if delivery_address is None and delivery_window is None:
            raise ServiceValidationError("Missing delivery update fields", code="INVALID")

        sub = _get_subscription(db, subscription_id)
        validation.ensure_active(sub, day_date)
        validation.validate_future_date(sub, day_date)
        validation.ensure_before_cutoff(db, day_date)
        if sub.delivery_mode != DeliveryMode.DELIVERY.value:
            raise ServiceValidationError("Delivery mode is not delivery", code="INVALID")
        _check_window(db, delivery_window)

        day_repo = DayRepository(db)
        existing = day_repo.get_for_date(subscription_id, day_date)
        if existing is not None and existing.status != DayStatus.OPEN.value:
            raise ConflictError("Day is locked", code="LOCKED")

        values = {}
        if delivery_address is not None:
            values["delivery_address_override"] = delivery_address
        if delivery_window is not None:
            values["delivery_window_override"] = delivery_window

        with atomic(db):
            day, _ = day_repo.get_or_create(subscription_id, day_date)
            if not day_repo.update_open_day(day.day_id, **values):
                raise ConflictError("Day is locked", code="LOCKED")
            ActivityLogRepository(db).write(
                "subscription_day",
                day.day_id,
                "delivery_update_day",
                by_role="client",
                by_user_id=user_id,
                meta={"date": day_date.isoformat(), "delivery_window": delivery_window},
            )
        return day

    @staticmethod
    def update_delivery_details(
        db: Session,
        subscription_id: uuid.UUID,
        delivery_address: Optional[dict] = None,
        delivery_window: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Subscription:
        """Change the subscription's default delivery address/window"""
        if not delivery_address and not delivery_window:
            raise ServiceValidationError("Missing delivery update fields", code="INVALID")

        sub = _get_subscription(db, subscription_id)
        validation.ensure_active(sub)
        if sub.delivery_mode != DeliveryMode.DELIVERY.value:
            raise ServiceValidationError("Delivery mode is not delivery", code="INVALID")
        _check_window(db, delivery_window)

        with atomic(db):
            if delivery_address:
                sub.delivery_address = delivery_address
            if delivery_window:
                sub.delivery_window = delivery_window
            ActivityLogRepository(db).write(
                "subscription",
                sub.subscription_id,
                "delivery_update",
                by_role="client",
                by_user_id=user_id,
                meta={"delivery_window": sub.delivery_window},
            )
        return sub

    # ------------------------------------------------------------------
    # Pickup
    # ------------------------------------------------------------------

    @staticmethod
    def prepare_pickup(
        db: Session,
        subscription_id: uuid.UUID,
        day_date,
        user_id: Optional[uuid.UUID] = None,
    ) -> SubscriptionDay:
        """
        Client request to collect a future day at the restaurant.

        Locks the day, captures its snapshot and takes the day's credits up
        front, all in one unit; the later pickup fulfillment does not charge
        again. A repeated request returns the day unchanged.

        Raises:
            NotFoundError: Subscription missing
            SubscriptionInactiveError: Not active or expired
            ServiceValidationError: INVALID_DATE, LOCKED (cutoff), INVALID (mode)
            ConflictError: INVALID_TRANSITION, or LOCKED when a concurrent
                writer moved the day first
            InsufficientCreditsError: Balance does not cover the day
        """
        day_date = parse_day_date(day_date)
        sub = _get_subscription(db, subscription_id)
        validation.ensure_active(sub, day_date)
        validation.validate_future_date(sub, day_date)
        validation.ensure_before_cutoff(db, day_date)
        if sub.delivery_mode != DeliveryMode.PICKUP.value:
            raise ServiceValidationError("Delivery mode is not pickup", code="INVALID")

        day_repo = DayRepository(db)
        day = day_repo.get_for_date(subscription_id, day_date)
        if day is not None and (day.pickup_requested or day.credits_deducted):
            return day
        if day is not None and not can_transition(day.status, DayStatus.LOCKED):
            raise ConflictError("Invalid state transition", code="INVALID_TRANSITION")

        meals = sub.meals_per_day
        try:
            with atomic(db):
                if day is None:
                    day = day_repo.create_day(
                        subscription_id,
                        day_date,
                        status=DayStatus.LOCKED.value,
                        pickup_requested=True,
                        credits_deducted=True,
                    )
                    if day is None:
                        raise ConflictError("Day already locked", code="LOCKED")
                elif not day_repo.transition(
                    day.day_id,
                    [DayStatus.OPEN],
                    DayStatus.LOCKED,
                    pickup_requested=True,
                    credits_deducted=True,
                ):
                    raise ConflictError("Day already locked", code="LOCKED")

                SnapshotService.ensure_locked_snapshot(db, sub, day)
                CreditLedger.debit(db, subscription_id, meals)

                ActivityLogRepository(db).write(
                    "subscription_day",
                    day.day_id,
                    "pickup_prepare",
                    by_role="client",
                    by_user_id=user_id,
                    meta={"date": day_date.isoformat(), "deducted_credits": meals},
                )
        except ServiceError:
            raise
        except Exception:
            logger.exception("Pickup preparation failed for %s on %s", subscription_id, day_date)
            raise

        logger.info("Pickup prepared for day %s, %s credits taken", day.day_id, meals)
        return day
