"""
Repositories package - Data access layer.
"""

from repositories.base import BaseRepository
from repositories.plan_repository import PlanRepository
from repositories.subscription_repository import SubscriptionRepository
from repositories.day_repository import DayRepository
from repositories.payment_repository import PaymentRepository
from repositories.order_repository import OrderRepository
from repositories.delivery_repository import DeliveryRepository
from repositories.setting_repository import SettingRepository, CUTOFF_CHECKPOINT_KEY
from repositories.activity_repository import (
    ActivityLogRepository,
    NotificationLogRepository,
)

__all__ = [
    "BaseRepository",
    "PlanRepository",
    "SubscriptionRepository",
    "DayRepository",
    "PaymentRepository",
    "OrderRepository",
    "DeliveryRepository",
    "SettingRepository",
    "CUTOFF_CHECKPOINT_KEY",
    "ActivityLogRepository",
    "NotificationLogRepository",
]
