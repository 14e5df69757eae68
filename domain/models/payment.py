"""
Provider payments and one-time orders.
"""

from sqlalchemy import (
    Column,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Uuid,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class Payment(Base):
    """Provider-correlated payment with a one-shot ``applied`` latch"""

    __tablename__ = "payment"

    payment_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    provider = Column(Text, nullable=False, default="moyasar")
    type = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="initiated")
    amount = Column(Integer, nullable=False, default=0)  # minor units
    currency = Column(Text, nullable=False, default="SAR")
    user_id = Column(Uuid)
    subscription_id = Column(
        Uuid, ForeignKey("subscription.subscription_id", ondelete="SET NULL")
    )
    order_id = Column(Uuid, ForeignKey("meal_order.order_id", ondelete="SET NULL"))
    provider_invoice_id = Column(Text)
    provider_payment_id = Column(Text)
    meta = Column("metadata", JSON, nullable=False, default=dict)
    applied = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "provider", "provider_payment_id", name="uq_payment_provider_payment_id"
        ),
        UniqueConstraint(
            "provider", "provider_invoice_id", name="uq_payment_provider_invoice_id"
        ),
        CheckConstraint("amount >= 0", name="ck_payment_amount_nonneg"),
    )


class Order(Base):
    """One-time (non-subscription) order"""

    __tablename__ = "meal_order"

    order_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    status = Column(Text, nullable=False, default="created")
    payment_status = Column(Text, nullable=False, default="initiated")
    payment_id = Column(Uuid)
    provider_invoice_id = Column(Text)
    provider_payment_id = Column(Text)
    items = Column(JSON, nullable=False, default=list)
    total_amount = Column(Integer, nullable=False, default=0)
    confirmed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
