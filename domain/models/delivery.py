"""
Courier delivery records.
"""

from sqlalchemy import Column, Text, DateTime, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from domain.models.database import Base


class Delivery(Base):
    """One delivery per subscription day, created when the day goes out"""

    __tablename__ = "delivery"

    delivery_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    day_id = Column(
        Uuid,
        ForeignKey("subscription_day.day_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    subscription_id = Column(
        Uuid,
        ForeignKey("subscription.subscription_id", ondelete="CASCADE"),
        nullable=False,
    )
    status = Column(Text, nullable=False, default="scheduled")
    address = Column(JSON(none_as_null=True))
    window = Column(Text)
    delivered_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    day = relationship("SubscriptionDay")
    subscription = relationship("Subscription")
