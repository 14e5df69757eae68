from datetime import date
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging
import uuid

from app.clock import parse_day_date
from app.exceptions import (
    ConflictError,
    NotFoundError,
    ServiceError,
    ServiceValidationError,
)
from domain.day_state import can_transition
from domain.enums import DayStatus, DeliveryMode
from domain.models import SubscriptionDay, atomic
from repositories import (
    ActivityLogRepository,
    DayRepository,
    DeliveryRepository,
    SubscriptionRepository,
)
from services.fulfillment_service import FulfillmentService
from services.notification_service import NotificationService
from services.snapshot_service import SnapshotService, effective_delivery

logger = logging.getLogger("mealpass.kitchen")


class KitchenService:
    @staticmethod
    def list_daily(db: Session, day_date) -> List[Dict[str, Any]]:
        """
        Kitchen board for one date.

        Each entry carries the effective delivery details and, once locked,
        the custom salads captured in the snapshot.
        """
        day_date = parse_day_date(day_date)
        board = []
        for day in DayRepository(db).list_by_date(day_date):
            sub = day.subscription
            address, window = effective_delivery(sub, day)
            addons = list(sub.addon_subscriptions or [])
            snapshot = day.locked_snapshot or {}
            board.append(
                {
                    "day_id": day.day_id,
                    "subscription_id": day.subscription_id,
                    "user_id": sub.user_id,
                    "date": day.date,
                    "status": day.status,
                    "delivery_mode": sub.delivery_mode,
                    "selections": list(day.selections or []),
                    "premium_selections": list(day.premium_selections or []),
                    "addons_one_time": list(day.addons_one_time or []),
                    "custom_salads": snapshot.get("custom_salads", list(day.custom_salads or [])),
                    "subscription_addons": addons,
                    "kitchen_addons": addons + list(day.addons_one_time or []),
                    "effective_address": address,
                    "effective_window": window,
                    "assigned_by_kitchen": day.assigned_by_kitchen,
                    "pickup_requested": day.pickup_requested,
                    "locked_snapshot": day.locked_snapshot,
                }
            )
        return board

    @staticmethod
    def transition_day(
        db: Session,
        subscription_id: uuid.UUID,
        day_date,
        to_status: DayStatus,
        actor_id: Optional[uuid.UUID] = None,
        actor_role: str = "kitchen",
    ) -> SubscriptionDay:
        """
        Move a day one step along the delivery lifecycle.

        Locking captures the snapshot; out_for_delivery creates the courier
        delivery from the snapshot's address and window; ready_for_pickup
        notifies the subscriber once committed.

        Raises:
            NotFoundError: Day or subscription missing
            ConflictError: INVALID_TRANSITION, including a concurrent move
            ServiceValidationError: INVALID for the wrong delivery mode
        """
        day_date = parse_day_date(day_date)
        to_status = DayStatus(to_status)
        day_repo = DayRepository(db)

        day = day_repo.get_for_date(subscription_id, day_date)
        if day is None:
            raise NotFoundError("Day not found")
        if not can_transition(day.status, to_status):
            raise ConflictError("Invalid state transition", code="INVALID_TRANSITION")

        sub = SubscriptionRepository(db).get_by_id(subscription_id)
        if sub is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        if to_status == DayStatus.OUT_FOR_DELIVERY and sub.delivery_mode != DeliveryMode.DELIVERY.value:
            raise ServiceValidationError("Not a delivery subscription", code="INVALID")
        if to_status == DayStatus.READY_FOR_PICKUP and sub.delivery_mode != DeliveryMode.PICKUP.value:
            raise ServiceValidationError("Not a pickup subscription", code="INVALID")

        from_status = day.status
        try:
            with atomic(db):
                if to_status == DayStatus.LOCKED:
                    SnapshotService.ensure_locked_snapshot(db, sub, day)

                if to_status == DayStatus.OUT_FOR_DELIVERY:
                    snapshot = day.locked_snapshot
                    if snapshot:
                        address, window = snapshot.get("address"), snapshot.get("delivery_window")
                    else:
                        address, window = effective_delivery(sub, day)
                    DeliveryRepository(db).create_for_day(
                        day.day_id, sub.subscription_id, address, window
                    )

                if not day_repo.transition(day.day_id, [from_status], to_status):
                    raise ConflictError("Invalid state transition", code="INVALID_TRANSITION")

                ActivityLogRepository(db).write(
                    "subscription_day",
                    day.day_id,
                    "state_change",
                    by_role=actor_role,
                    by_user_id=actor_id,
                    meta={"from": from_status, "to": to_status.value, "date": day_date.isoformat()},
                )
        except ServiceError:
            raise
        except Exception:
            logger.exception("Transition of day %s to %s failed", day.day_id, to_status.value)
            raise

        logger.info("Day %s moved %s -> %s", day.day_id, from_status, to_status.value)
        if to_status == DayStatus.READY_FOR_PICKUP:
            NotificationService.notify(
                db,
                sub.user_id,
                "Order ready for pickup",
                "Your order is ready for pickup at the restaurant",
                {"subscription_id": sub.subscription_id, "date": day_date.isoformat()},
            )
        return day

    @staticmethod
    def fulfill_pickup(
        db: Session,
        subscription_id: uuid.UUID,
        day_date,
        actor_id: Optional[uuid.UUID] = None,
        actor_role: str = "kitchen",
    ) -> Dict[str, Any]:
        """Hand a ready pickup day to the subscriber and charge it (once)"""
        day_date = parse_day_date(day_date)
        with atomic(db):
            result = FulfillmentService.fulfill_subscription_day(
                db, subscription_id=subscription_id, day_date=day_date
            )
            result.raise_for_failure()
            ActivityLogRepository(db).write(
                "subscription_day",
                result.day.day_id,
                "pickup_fulfilled",
                by_role=actor_role,
                by_user_id=actor_id,
                meta={"deducted_credits": result.deducted_credits, "date": day_date.isoformat()},
            )
        return {
            "day": result.day,
            "deducted_credits": result.deducted_credits,
            "already_fulfilled": result.already_fulfilled,
        }

    @staticmethod
    def assign_meals(
        db: Session,
        subscription_id: uuid.UUID,
        day_date,
        selections: List[str],
        premium_selections: Optional[List[str]] = None,
        actor_id: Optional[uuid.UUID] = None,
        actor_role: str = "kitchen",
    ) -> SubscriptionDay:
        """
        Kitchen assignment of meals on an open (or not yet created) day.

        Raises:
            NotFoundError: Subscription missing
            ServiceValidationError: DAILY_CAP if more meals than meals_per_day
            ConflictError: LOCKED if the day is no longer open
        """
        day_date = parse_day_date(day_date)
        selections = list(selections or [])
        premium_selections = list(premium_selections or [])

        sub = SubscriptionRepository(db).get_by_id(subscription_id)
        if sub is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        if len(selections) + len(premium_selections) > sub.meals_per_day:
            raise ServiceValidationError("Selections exceed meals per day", code="DAILY_CAP")

        with atomic(db):
            day_repo = DayRepository(db)
            day, _ = day_repo.get_or_create(subscription_id, day_date)
            if not day_repo.update_open_day(
                day.day_id,
                selections=selections,
                premium_selections=premium_selections,
                assigned_by_kitchen=True,
            ):
                raise ConflictError("Day is locked", code="LOCKED")
            ActivityLogRepository(db).write(
                "subscription_day",
                day.day_id,
                "assign_meals",
                by_role=actor_role,
                by_user_id=actor_id,
                meta={
                    "selections_count": len(selections),
                    "premium_count": len(premium_selections),
                },
            )
        logger.info("Kitchen assigned %d meals to day %s", len(selections) + len(premium_selections), day.day_id)
        return day
