"""
Domain schemas package - Pydantic models for validation.
"""

from domain.schemas.subscription_schemas import (
    PlanResponse,
    SubscriptionResponse,
    CheckoutPreviewRequest,
    CheckoutPreviewResponse,
    CheckoutRequest,
    CheckoutResponse,
    DayResponse,
    SelectionUpdateRequest,
    AssignMealsRequest,
    SkipRangeRequest,
    SkipRangeResponse,
    SkipResponse,
    RejectedDate,
    DeliveryUpdateRequest,
    FulfillmentResponse,
    KitchenDayResponse,
    DeliveryResponse,
    SettingUpdateRequest,
)
from domain.schemas.payment_schemas import (
    PremiumTopupRequest,
    AddonPurchaseRequest,
    PaymentInitResponse,
    WebhookResult,
)

__all__ = [
    # Subscription schemas
    "PlanResponse",
    "SubscriptionResponse",
    "CheckoutPreviewRequest",
    "CheckoutPreviewResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    "DayResponse",
    "SelectionUpdateRequest",
    "AssignMealsRequest",
    "SkipRangeRequest",
    "SkipRangeResponse",
    "SkipResponse",
    "RejectedDate",
    "DeliveryUpdateRequest",
    "FulfillmentResponse",
    "KitchenDayResponse",
    "DeliveryResponse",
    "SettingUpdateRequest",
    # Payment schemas
    "PremiumTopupRequest",
    "AddonPurchaseRequest",
    "PaymentInitResponse",
    "WebhookResult",
]
