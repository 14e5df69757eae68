"""
Domain models package - SQLAlchemy ORM models.
"""

from domain.models.database import (
    Base,
    engine,
    SessionLocal,
    init_database,
    get_db_session,
    atomic,
    abort,
)
from domain.models.subscription import Plan, Subscription, SubscriptionDay
from domain.models.payment import Payment, Order
from domain.models.delivery import Delivery
from domain.models.system import Setting, ActivityLog, NotificationLog

__all__ = [
    # Database
    "Base",
    "engine",
    "SessionLocal",
    "init_database",
    "get_db_session",
    "atomic",
    "abort",
    # Subscription models
    "Plan",
    "Subscription",
    "SubscriptionDay",
    # Payment models
    "Payment",
    "Order",
    # Delivery
    "Delivery",
    # System
    "Setting",
    "ActivityLog",
    "NotificationLog",
]
