from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID


class PremiumTopupRequest(BaseModel):
    """Schema for buying premium credits"""

    count: int = Field(..., description="Number of premium meals to buy")
    success_url: Optional[str] = None
    back_url: Optional[str] = None


class AddonPurchaseRequest(BaseModel):
    """Schema for buying a one-time add-on for a day"""

    addon_id: str
    date: str = Field(..., description="YYYY-MM-DD")
    success_url: Optional[str] = None
    back_url: Optional[str] = None


class PaymentInitResponse(BaseModel):
    """Hosted payment page for an initiated payment"""

    payment_url: Optional[str] = None
    invoice_id: str
    payment_id: UUID


class WebhookResult(BaseModel):
    """Outcome of one webhook delivery"""

    payment_id: UUID
    status: str
    applied: bool
    unapplied_reason: Optional[str] = None
    message: Optional[str] = None
