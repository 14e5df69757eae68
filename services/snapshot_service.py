from typing import Any, Dict, Optional, Tuple
from sqlalchemy.orm import Session
import logging

from app import clock
from domain.models import Subscription, SubscriptionDay
from repositories import DayRepository

logger = logging.getLogger("mealpass.snapshot")


def effective_delivery(
    subscription: Subscription, day: Optional[SubscriptionDay]
) -> Tuple[Optional[dict], Optional[str]]:
    """Day-level override when present and non-empty, else the subscription default."""
    address = subscription.delivery_address
    window = subscription.delivery_window
    if day is not None:
        if day.delivery_address_override:
            address = day.delivery_address_override
        if day.delivery_window_override:
            window = day.delivery_window_override
    return address, window


def _money(value) -> Optional[str]:
    return None if value is None else str(value)


class SnapshotService:
    @staticmethod
    def build_snapshot(subscription: Subscription, day: SubscriptionDay) -> Dict[str, Any]:
        """
        Capture a day's billable content by value.

        Lists are copied so later edits to the day, the catalog or the
        subscription's pricing cannot reach into the snapshot.
        """
        address, window = effective_delivery(subscription, day)
        addons = [dict(a) for a in (subscription.addon_subscriptions or [])]
        return {
            "selections": list(day.selections or []),
            "premium_selections": list(day.premium_selections or []),
            "addons_one_time": list(day.addons_one_time or []),
            "custom_salads": [dict(s) for s in (day.custom_salads or [])],
            "subscription_addons": addons,
            "address": dict(address) if isinstance(address, dict) else address,
            "delivery_window": window,
            "meals_per_day": subscription.meals_per_day,
            "pricing": {
                "plan_id": str(subscription.plan_id),
                "premium_price": _money(subscription.premium_price),
                "addons": [dict(a) for a in addons],
            },
        }

    @staticmethod
    def ensure_locked_snapshot(
        db: Session, subscription: Subscription, day: SubscriptionDay
    ) -> Dict[str, Any]:
        """
        Write the day's locked snapshot once.

        A day that already carries a snapshot is returned untouched. The write
        is guarded by ``locked_snapshot IS NULL`` so a concurrent locker can
        never overwrite the winner's snapshot.

        Args:
            db: Database session (caller owns the transaction)
            subscription: Owning subscription
            day: Day to lock

        Returns:
            The snapshot now stored on the day
        """
        if day.locked_snapshot is not None:
            return day.locked_snapshot

        snapshot = SnapshotService.build_snapshot(subscription, day)
        won = DayRepository(db).set_locked_snapshot(day.day_id, snapshot, clock.utcnow())
        if not won:
            logger.info("Snapshot for day %s already written by another request", day.day_id)
            db.refresh(day)
        return day.locked_snapshot
