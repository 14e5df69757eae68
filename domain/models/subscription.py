"""
Plan, subscription and subscription-day models.
"""

from sqlalchemy import (
    Column,
    Text,
    Integer,
    Numeric,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Uuid,
    CheckConstraint,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class Plan(Base):
    """Purchasable day-based meal plan"""

    __tablename__ = "plan"

    plan_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    days_count = Column(Integer, nullable=False)
    meals_per_day = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    skip_allowance = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("days_count > 0", name="ck_plan_days_count_pos"),
        CheckConstraint("meals_per_day > 0", name="ck_plan_meals_per_day_pos"),
    )


class Subscription(Base):
    """A user's purchased plan and its credit balances"""

    __tablename__ = "subscription"

    subscription_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    plan_id = Column(Uuid, ForeignKey("plan.plan_id"), nullable=False)
    status = Column(Text, nullable=False, default="pending_payment")
    start_date = Column(Date)
    end_date = Column(Date)
    validity_end_date = Column(Date)
    total_meals = Column(Integer, nullable=False, default=0)
    remaining_meals = Column(Integer, nullable=False, default=0)
    premium_remaining = Column(Integer, nullable=False, default=0)
    premium_price = Column(Numeric(10, 2), nullable=False, default=0)
    addon_subscriptions = Column(JSON, nullable=False, default=list)
    delivery_mode = Column(Text, nullable=False, default="delivery")
    delivery_address = Column(JSON(none_as_null=True))
    delivery_window = Column(Text)
    skipped_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    plan = relationship("Plan", lazy="joined")

    __table_args__ = (
        CheckConstraint("remaining_meals >= 0", name="ck_subscription_remaining_nonneg"),
        CheckConstraint("premium_remaining >= 0", name="ck_subscription_premium_nonneg"),
        CheckConstraint("skipped_count >= 0", name="ck_subscription_skipped_nonneg"),
    )

    @property
    def meals_per_day(self) -> int:
        return self.plan.meals_per_day if self.plan is not None else 1


class SubscriptionDay(Base):
    """One calendar date of one subscription; the unit the state machine acts on"""

    __tablename__ = "subscription_day"

    day_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    subscription_id = Column(
        Uuid,
        ForeignKey("subscription.subscription_id", ondelete="CASCADE"),
        nullable=False,
    )
    date = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default="open")
    selections = Column(JSON, nullable=False, default=list)
    premium_selections = Column(JSON, nullable=False, default=list)
    addons_one_time = Column(JSON, nullable=False, default=list)
    custom_salads = Column(JSON, nullable=False, default=list)
    assigned_by_kitchen = Column(Boolean, nullable=False, default=False)
    pickup_requested = Column(Boolean, nullable=False, default=False)
    credits_deducted = Column(Boolean, nullable=False, default=False)
    delivery_address_override = Column(JSON(none_as_null=True))
    delivery_window_override = Column(Text)
    locked_snapshot = Column(JSON(none_as_null=True))
    locked_at = Column(DateTime(timezone=True))
    fulfilled_snapshot = Column(JSON(none_as_null=True))
    fulfilled_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    subscription = relationship("Subscription")

    __table_args__ = (
        UniqueConstraint("subscription_id", "date", name="uq_subscription_day_date"),
        Index("ix_subscription_day_date_status", "date", "status"),
    )
