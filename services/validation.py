"""
Shared request preconditions for subscription-day mutations.

All checks here run before any transaction opens.
"""

from datetime import date
from typing import Optional
from sqlalchemy.orm import Session

from app import clock
from app.exceptions import ServiceValidationError, SubscriptionInactiveError
from domain.enums import SubscriptionStatus
from domain.models import Subscription
from services.settings_service import SettingsService


def validity_end(subscription: Subscription) -> Optional[date]:
    return subscription.validity_end_date or subscription.end_date


def ensure_active(subscription: Subscription, day_date: Optional[date] = None) -> None:
    """
    Raises:
        SubscriptionInactiveError: SUB_INACTIVE if not active, SUB_EXPIRED if
            ``day_date`` (default today) is past the validity end
    """
    if subscription.status != SubscriptionStatus.ACTIVE.value:
        raise SubscriptionInactiveError("Subscription not active", code="SUB_INACTIVE")
    end = validity_end(subscription)
    compare_to = day_date or clock.today()
    if end is not None and compare_to > end:
        raise SubscriptionInactiveError("Subscription expired", code="SUB_EXPIRED")


def validate_future_date(subscription: Subscription, day_date: date) -> None:
    """Date must be from tomorrow onward and inside the validity window"""
    if day_date < clock.today():
        raise ServiceValidationError("Date cannot be in the past", code="INVALID_DATE")
    if day_date < clock.tomorrow():
        raise ServiceValidationError("Date must be from tomorrow onward", code="INVALID_DATE")
    end = validity_end(subscription)
    if end is not None and day_date > end:
        raise ServiceValidationError("Date outside subscription validity", code="INVALID_DATE")


def cutoff_passed_for(db: Session, day_date: date) -> bool:
    """True when ``day_date`` is tomorrow and today's cutoff has been reached"""
    if day_date != clock.tomorrow():
        return False
    return not clock.is_before_cutoff(SettingsService.cutoff_time(db))


def ensure_before_cutoff(db: Session, day_date: date) -> None:
    if cutoff_passed_for(db, day_date):
        raise ServiceValidationError("Cutoff time passed for tomorrow", code="LOCKED")
