from dataclasses import dataclass
from datetime import date
from typing import Optional
from sqlalchemy.orm import Session
import logging
import uuid

from app import clock
from app.exceptions import (
    ConflictError,
    InsufficientCreditsError,
    NotFoundError,
    ServiceValidationError,
)
from domain.day_state import can_transition
from domain.enums import DayStatus
from domain.models import SubscriptionDay, atomic
from repositories import DayRepository, SubscriptionRepository
from services.credit_ledger import CreditLedger

logger = logging.getLogger("mealpass.fulfillment")


@dataclass
class FulfillmentResult:
    ok: bool
    day: Optional[SubscriptionDay] = None
    deducted_credits: int = 0
    already_fulfilled: bool = False
    code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls, code: str, message: str) -> "FulfillmentResult":
        return cls(ok=False, code=code, message=message)

    def raise_for_failure(self) -> None:
        """Turn a failed result into the matching service error."""
        if self.ok:
            return
        if self.code == "NOT_FOUND":
            raise NotFoundError(self.message, code=self.code)
        if self.code == "INSUFFICIENT_CREDITS":
            raise InsufficientCreditsError(self.message)
        if self.code == "INVALID_TRANSITION":
            raise ConflictError(self.message, code=self.code)
        raise ServiceValidationError(self.message, code=self.code)


class _LostRace(Exception):
    """Another request fulfilled or moved the day first."""


class FulfillmentService:
    @staticmethod
    def _load_day(
        db: Session,
        day_id: Optional[uuid.UUID],
        subscription_id: Optional[uuid.UUID],
        day_date: Optional[date],
    ) -> Optional[SubscriptionDay]:
        day_repo = DayRepository(db)
        if day_id is not None:
            return day_repo.get_by_id(day_id)
        if subscription_id is not None and day_date is not None:
            return day_repo.get_for_date(subscription_id, day_date)
        return None

    @staticmethod
    def fulfill_subscription_day(
        db: Session,
        day_id: Optional[uuid.UUID] = None,
        subscription_id: Optional[uuid.UUID] = None,
        day_date: Optional[date] = None,
    ) -> FulfillmentResult:
        """
        Mark a day fulfilled and charge its meals exactly once.

        Repeated calls on a fulfilled day are side-effect free and report the
        credits recorded by the first call. A day whose credits were already
        taken (pickup preparation) is fulfilled without a second debit.

        Args:
            db: Database session
            day_id: Day to fulfill, or
            subscription_id, day_date: the subscription and date of the day

        Returns:
            FulfillmentResult; failures carry NOT_FOUND, SKIPPED,
            INVALID_TRANSITION or INSUFFICIENT_CREDITS
        """
        day = FulfillmentService._load_day(db, day_id, subscription_id, day_date)
        if day is None:
            return FulfillmentResult.failure("NOT_FOUND", "Day not found")

        if day.status == DayStatus.SKIPPED.value:
            return FulfillmentResult.failure("SKIPPED", "Cannot fulfill skipped day")

        recorded = day.fulfilled_snapshot or {}
        if day.status == DayStatus.FULFILLED.value and "deducted_credits" in recorded:
            return FulfillmentResult(
                ok=True,
                day=day,
                deducted_credits=recorded["deducted_credits"],
                already_fulfilled=True,
            )

        if not can_transition(day.status, DayStatus.FULFILLED):
            return FulfillmentResult.failure("INVALID_TRANSITION", "Invalid state transition")

        subscription = SubscriptionRepository(db).get_by_id(day.subscription_id)
        if subscription is None:
            return FulfillmentResult.failure("NOT_FOUND", "Subscription not found")

        meals_per_day = subscription.meals_per_day
        observed_status = day.status
        pre_deducted = bool(day.credits_deducted)
        deducted = 0 if pre_deducted else meals_per_day
        snapshot = {
            "selections": list(day.selections or []),
            "premium_selections": list(day.premium_selections or []),
            "addons_one_time": list(day.addons_one_time or []),
            "deducted_credits": deducted,
        }

        try:
            with atomic(db):
                if not DayRepository(db).mark_fulfilled(
                    day.day_id, observed_status, snapshot, clock.utcnow()
                ):
                    raise _LostRace()
                if not pre_deducted:
                    CreditLedger.debit(db, subscription.subscription_id, meals_per_day)
        except InsufficientCreditsError:
            logger.error(
                "Day %s could not be charged: subscription %s lacks %s credits",
                day.day_id,
                subscription.subscription_id,
                meals_per_day,
            )
            return FulfillmentResult.failure("INSUFFICIENT_CREDITS", "Not enough credits")
        except _LostRace:
            db.refresh(day)
            if day.status == DayStatus.FULFILLED.value:
                return FulfillmentResult(
                    ok=True,
                    day=day,
                    deducted_credits=(day.fulfilled_snapshot or {}).get("deducted_credits", 0),
                    already_fulfilled=True,
                )
            return FulfillmentResult.failure("INVALID_TRANSITION", "Invalid state transition")

        logger.info("Day %s fulfilled, %s credits deducted", day.day_id, deducted)
        return FulfillmentResult(ok=True, day=day, deducted_credits=deducted)
