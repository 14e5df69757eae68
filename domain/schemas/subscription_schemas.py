from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal

from domain.day_state import client_status


# ============================================================================
# Plans & subscriptions
# ============================================================================


class PlanResponse(BaseModel):
    """Schema for a purchasable plan"""

    plan_id: UUID
    name: str
    days_count: int
    meals_per_day: int
    price: Decimal
    skip_allowance: int
    is_active: bool

    model_config = {"from_attributes": True}


class SubscriptionResponse(BaseModel):
    """Schema for subscription response"""

    subscription_id: UUID
    user_id: UUID
    plan_id: UUID
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    validity_end_date: Optional[date] = None
    total_meals: int
    remaining_meals: int
    premium_remaining: int
    premium_price: Decimal
    skipped_count: int
    addon_subscriptions: List[Dict[str, Any]] = []
    delivery_mode: str
    delivery_address: Optional[Dict[str, Any]] = None
    delivery_window: Optional[str] = None

    model_config = {"from_attributes": True}


class CheckoutPreviewRequest(BaseModel):
    """Schema for pricing a checkout"""

    plan_id: UUID
    premium_count: int = Field(default=0, ge=0)
    addon_ids: List[str] = Field(default_factory=list)


class CheckoutRequest(CheckoutPreviewRequest):
    """Schema for starting a subscription checkout"""

    user_id: UUID
    delivery_mode: str = Field(..., description="'delivery' or 'pickup'")
    delivery_address: Optional[Dict[str, Any]] = None
    delivery_window: Optional[str] = Field(None, description="One of the configured windows")
    start_date: Optional[str] = Field(None, description="YYYY-MM-DD, defaults to today")
    success_url: Optional[str] = None
    back_url: Optional[str] = None


class CheckoutPreviewResponse(BaseModel):
    total: Decimal
    breakdown: Dict[str, Decimal]


class CheckoutResponse(BaseModel):
    payment_url: Optional[str] = None
    invoice_id: str
    payment_id: UUID
    subscription_id: UUID
    total: Decimal


# ============================================================================
# Subscription days
# ============================================================================


class DayResponse(BaseModel):
    """Schema for one subscription day"""

    day_id: UUID
    subscription_id: UUID
    date: date
    status: str
    selections: List[str] = []
    premium_selections: List[str] = []
    addons_one_time: List[str] = []
    custom_salads: List[Dict[str, Any]] = []
    assigned_by_kitchen: bool = False
    pickup_requested: bool = False
    credits_deducted: bool = False
    delivery_address_override: Optional[Dict[str, Any]] = None
    delivery_window_override: Optional[str] = None
    locked_snapshot: Optional[Dict[str, Any]] = None
    locked_at: Optional[datetime] = None
    fulfilled_snapshot: Optional[Dict[str, Any]] = None
    fulfilled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @classmethod
    def for_client(cls, day) -> "DayResponse":
        """Day as shown to the subscriber (client status vocabulary)"""
        response = cls.model_validate(day)
        return response.model_copy(update={"status": client_status(day.status)})


class SelectionUpdateRequest(BaseModel):
    """Schema for replacing a day's meal choices"""

    selections: List[str] = Field(default_factory=list)
    premium_selections: List[str] = Field(default_factory=list)
    addons_one_time: Optional[List[str]] = Field(
        None, description="Replaces the day's one-time add-ons when provided"
    )


class AssignMealsRequest(BaseModel):
    """Schema for a kitchen meal assignment"""

    selections: List[str] = Field(default_factory=list)
    premium_selections: List[str] = Field(default_factory=list)


class SkipRangeRequest(BaseModel):
    """Schema for skipping consecutive days"""

    start_date: str = Field(..., description="YYYY-MM-DD")
    days: int = Field(..., description="Number of consecutive days to skip")


class RejectedDate(BaseModel):
    date: str
    reason: str


class SkipRangeResponse(BaseModel):
    skipped_dates: List[str]
    compensated_dates_added: List[str]
    already_skipped: List[str]
    rejected: List[RejectedDate]


class SkipResponse(BaseModel):
    status: str
    day: Optional[DayResponse] = None
    compensated_date: Optional[date] = None


class DeliveryUpdateRequest(BaseModel):
    """Schema for delivery address/window changes"""

    delivery_address: Optional[Dict[str, Any]] = None
    delivery_window: Optional[str] = None


class FulfillmentResponse(BaseModel):
    day: DayResponse
    deducted_credits: int
    already_fulfilled: bool


# ============================================================================
# Kitchen & courier
# ============================================================================


class KitchenDayResponse(BaseModel):
    """Kitchen board entry with effective delivery details"""

    day_id: UUID
    subscription_id: UUID
    user_id: UUID
    date: date
    status: str
    delivery_mode: str
    selections: List[str]
    premium_selections: List[str]
    addons_one_time: List[str]
    custom_salads: List[Dict[str, Any]]
    subscription_addons: List[Dict[str, Any]]
    kitchen_addons: List[Any]
    effective_address: Optional[Dict[str, Any]] = None
    effective_window: Optional[str] = None
    assigned_by_kitchen: bool
    pickup_requested: bool
    locked_snapshot: Optional[Dict[str, Any]] = None


class DeliveryResponse(BaseModel):
    """Schema for a courier delivery"""

    delivery_id: UUID
    day_id: UUID
    subscription_id: UUID
    status: str
    address: Optional[Dict[str, Any]] = None
    window: Optional[str] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ============================================================================
# Settings
# ============================================================================


class SettingUpdateRequest(BaseModel):
    value: Any = Field(..., description="New value for the setting")
