"""
Subscription Repository - Data access layer for subscriptions and their balances

Balance changes are single conditional UPDATE statements; the returned boolean
tells the caller whether the row was written.
"""

from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import Subscription
from domain.enums import SubscriptionStatus


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for subscription data access"""

    def __init__(self, db: Session):
        super().__init__(db, Subscription)

    def get_by_id(self, subscription_id: UUID) -> Optional[Subscription]:
        """Get subscription by ID"""
        return (
            self.db.query(Subscription)
            .filter(Subscription.subscription_id == subscription_id)
            .first()
        )

    def get_by_user_id(self, user_id: UUID) -> List[Subscription]:
        """Get all subscriptions for a user, newest first"""
        return (
            self.db.query(Subscription)
            .filter(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .all()
        )

    # ------------------------------------------------------------------
    # Meal credits
    # ------------------------------------------------------------------

    def debit_meals(self, subscription_id: UUID, amount: int, count_skip: bool = False) -> bool:
        """Decrement remaining_meals if the balance covers ``amount``"""
        values = {"remaining_meals": Subscription.remaining_meals - amount}
        if count_skip:
            values["skipped_count"] = Subscription.skipped_count + 1
        return self._conditional_update(
            Subscription.subscription_id == subscription_id,
            Subscription.remaining_meals >= amount,
            **values,
        )

    def credit_meals(self, subscription_id: UUID, amount: int) -> bool:
        """Increment remaining_meals; False only if the subscription is missing"""
        return self._conditional_update(
            Subscription.subscription_id == subscription_id,
            remaining_meals=Subscription.remaining_meals + amount,
        )

    # ------------------------------------------------------------------
    # Premium credits
    # ------------------------------------------------------------------

    def debit_premium(self, subscription_id: UUID, amount: int) -> bool:
        """Decrement premium_remaining if the balance covers ``amount``"""
        return self._conditional_update(
            Subscription.subscription_id == subscription_id,
            Subscription.premium_remaining >= amount,
            premium_remaining=Subscription.premium_remaining - amount,
        )

    def credit_premium(self, subscription_id: UUID, amount: int) -> bool:
        """Increment premium_remaining; False only if the subscription is missing"""
        return self._conditional_update(
            Subscription.subscription_id == subscription_id,
            premium_remaining=Subscription.premium_remaining + amount,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def activate(
        self, subscription_id: UUID, start_date: date, end_date: date
    ) -> bool:
        """Activate a subscription still waiting for its payment"""
        return self._conditional_update(
            Subscription.subscription_id == subscription_id,
            Subscription.status == SubscriptionStatus.PENDING_PAYMENT.value,
            status=SubscriptionStatus.ACTIVE.value,
            start_date=start_date,
            end_date=end_date,
            validity_end_date=end_date,
        )

    def extend_validity(
        self, subscription: Subscription, fallback: date, days: int = 1
    ) -> date:
        """
        Push validity_end_date (and end_date) forward.

        The new end date is computed from the row as read by the caller, which
        already holds the row lock taken by the preceding debit.
        """
        base = subscription.validity_end_date or subscription.end_date or fallback
        new_end = base + timedelta(days=days)
        self._conditional_update(
            Subscription.subscription_id == subscription.subscription_id,
            validity_end_date=new_end,
            end_date=new_end,
        )
        return new_end

    def get_skipped_count(self, subscription_id: UUID) -> int:
        """Read skipped_count straight from the table, bypassing the identity map"""
        return (
            self.db.query(Subscription.skipped_count)
            .filter(Subscription.subscription_id == subscription_id)
            .scalar()
        ) or 0
