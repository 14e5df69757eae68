"""
Domain enums for MealPass application.
Contains all enumeration types used across the domain models.
"""

import enum


class DayStatus(str, enum.Enum):
    """Delivery lifecycle of one subscription day"""

    OPEN = "open"
    LOCKED = "locked"
    IN_PREPARATION = "in_preparation"
    OUT_FOR_DELIVERY = "out_for_delivery"
    READY_FOR_PICKUP = "ready_for_pickup"
    FULFILLED = "fulfilled"
    SKIPPED = "skipped"


class SubscriptionStatus(str, enum.Enum):
    """Subscription billing state"""

    PENDING_PAYMENT = "pending_payment"
    ACTIVE = "active"
    EXPIRED = "expired"


class DeliveryMode(str, enum.Enum):
    """How a subscription's meals reach the user"""

    DELIVERY = "delivery"
    PICKUP = "pickup"


class DeliveryStatus(str, enum.Enum):
    """Courier delivery state"""

    SCHEDULED = "scheduled"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentType(str, enum.Enum):
    """What a provider payment pays for"""

    PREMIUM_TOPUP = "premium_topup"
    ONE_TIME_ADDON = "one_time_addon"
    SUBSCRIPTION_ACTIVATION = "subscription_activation"
    ONE_TIME_ORDER = "one_time_order"


class PaymentStatus(str, enum.Enum):
    """Normalized provider payment state"""

    INITIATED = "initiated"
    PAID = "paid"
    FAILED = "failed"
    CANCELED = "canceled"
    EXPIRED = "expired"
    REFUNDED = "refunded"


class OrderStatus(str, enum.Enum):
    """One-time order lifecycle"""

    CREATED = "created"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    READY_FOR_PICKUP = "ready_for_pickup"
    FULFILLED = "fulfilled"
    CANCELED = "canceled"
