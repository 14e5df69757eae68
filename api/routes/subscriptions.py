"""Client subscription routes: checkout, day edits, skips, pickup and purchases"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
import logging
from typing import List, Optional
from uuid import UUID

from api.responses import error_responses
from domain.models import get_db_session
from domain.schemas.subscription_schemas import (
    CheckoutPreviewRequest,
    CheckoutPreviewResponse,
    CheckoutRequest,
    CheckoutResponse,
    DayResponse,
    DeliveryUpdateRequest,
    SelectionUpdateRequest,
    SkipRangeRequest,
    SkipRangeResponse,
    SkipResponse,
    SubscriptionResponse,
)
from domain.schemas.payment_schemas import (
    AddonPurchaseRequest,
    PaymentInitResponse,
    PremiumTopupRequest,
)
from services import BillingService, DayService, SkipService

router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])
logger = logging.getLogger("mealpass.api.subscriptions")

_DAY_ERRORS = error_responses(400, 404, 409, 422)


# ============================================================================
# Checkout
# ============================================================================


@router.post("/checkout/preview", response_model=CheckoutPreviewResponse)
def preview_checkout(body: CheckoutPreviewRequest, db: Session = Depends(get_db_session)):
    """Price a plan with premium meals and add-ons."""
    return BillingService.preview_checkout(db, body.plan_id, body.premium_count, body.addon_ids)


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    responses=error_responses(400, 404, 502),
)
def checkout(body: CheckoutRequest, db: Session = Depends(get_db_session)):
    """
    Create a pending subscription and its payment invoice.

    The subscription activates when the provider webhook reports the
    invoice paid.
    """
    return BillingService.checkout_subscription(
        db,
        user_id=body.user_id,
        plan_id=body.plan_id,
        delivery_mode=body.delivery_mode,
        premium_count=body.premium_count,
        addon_ids=body.addon_ids,
        delivery_address=body.delivery_address,
        delivery_window=body.delivery_window,
        start_date=body.start_date,
        success_url=body.success_url,
        back_url=body.back_url,
    )


# ============================================================================
# Reads
# ============================================================================


@router.get("", response_model=List[SubscriptionResponse])
def list_subscriptions(
    user_id: UUID = Query(..., description="Subscriber"),
    db: Session = Depends(get_db_session),
):
    """All subscriptions of a user, newest first."""
    return DayService.list_subscriptions(db, user_id)


@router.get("/{subscription_id}", response_model=SubscriptionResponse)
def get_subscription(subscription_id: UUID, db: Session = Depends(get_db_session)):
    return DayService.get_subscription(db, subscription_id)


@router.get("/{subscription_id}/days", response_model=List[DayResponse])
def get_days(subscription_id: UUID, db: Session = Depends(get_db_session)):
    """All days of a subscription in date order, client status vocabulary."""
    return [DayResponse.for_client(d) for d in DayService.get_days(db, subscription_id)]


@router.get("/{subscription_id}/today", response_model=DayResponse)
def get_today(subscription_id: UUID, db: Session = Depends(get_db_session)):
    return DayResponse.for_client(DayService.get_today(db, subscription_id))


@router.get("/{subscription_id}/days/{day_date}", response_model=DayResponse)
def get_day(subscription_id: UUID, day_date: str, db: Session = Depends(get_db_session)):
    return DayResponse.for_client(DayService.get_day(db, subscription_id, day_date))


# ============================================================================
# Day edits
# ============================================================================


@router.put(
    "/{subscription_id}/days/{day_date}/selection",
    response_model=DayResponse,
    responses=_DAY_ERRORS,
)
def update_selection(
    subscription_id: UUID,
    day_date: str,
    body: SelectionUpdateRequest,
    user_id: Optional[UUID] = Query(None, description="Acting user"),
    db: Session = Depends(get_db_session),
):
    """Replace meal choices of a future open day (premium credits follow the change)."""
    day = DayService.update_selection(
        db,
        subscription_id,
        day_date,
        body.selections,
        body.premium_selections,
        addons_one_time=body.addons_one_time,
        user_id=user_id,
    )
    return DayResponse.for_client(day)


@router.post(
    "/{subscription_id}/days/{day_date}/skip",
    response_model=SkipResponse,
    responses=_DAY_ERRORS,
)
def skip_day(
    subscription_id: UUID,
    day_date: str,
    user_id: Optional[UUID] = Query(None, description="Acting user"),
    db: Session = Depends(get_db_session),
):
    """Skip one future day; its meals are charged and validity may be extended."""
    outcome = SkipService.skip_day(db, subscription_id, day_date, user_id=user_id)
    return SkipResponse(
        status=outcome.status.value,
        day=DayResponse.for_client(outcome.day) if outcome.day is not None else None,
        compensated_date=outcome.compensated_date,
    )


@router.post(
    "/{subscription_id}/skip-range",
    response_model=SkipRangeResponse,
    responses=error_responses(400, 404, 422),
)
def skip_range(
    subscription_id: UUID,
    body: SkipRangeRequest,
    user_id: Optional[UUID] = Query(None, description="Acting user"),
    db: Session = Depends(get_db_session),
):
    """Skip consecutive days; each date is accepted or rejected on its own."""
    return SkipService.skip_range(db, subscription_id, body.start_date, body.days, user_id=user_id)


@router.post(
    "/{subscription_id}/days/{day_date}/pickup/prepare",
    response_model=DayResponse,
    responses=_DAY_ERRORS,
)
def prepare_pickup(
    subscription_id: UUID,
    day_date: str,
    user_id: Optional[UUID] = Query(None, description="Acting user"),
    db: Session = Depends(get_db_session),
):
    """Request pickup for a future day: locks it and takes its credits."""
    return DayResponse.for_client(
        DayService.prepare_pickup(db, subscription_id, day_date, user_id=user_id)
    )


@router.put(
    "/{subscription_id}/delivery",
    response_model=SubscriptionResponse,
    responses=error_responses(400, 404, 422),
)
def update_delivery(
    subscription_id: UUID,
    body: DeliveryUpdateRequest,
    user_id: Optional[UUID] = Query(None, description="Acting user"),
    db: Session = Depends(get_db_session),
):
    """Change the default delivery address/window."""
    return DayService.update_delivery_details(
        db, subscription_id, body.delivery_address, body.delivery_window, user_id=user_id
    )


@router.put(
    "/{subscription_id}/days/{day_date}/delivery",
    response_model=DayResponse,
    responses=_DAY_ERRORS,
)
def update_day_delivery(
    subscription_id: UUID,
    day_date: str,
    body: DeliveryUpdateRequest,
    user_id: Optional[UUID] = Query(None, description="Acting user"),
    db: Session = Depends(get_db_session),
):
    """Override address/window for one future open day."""
    day = DayService.update_delivery_override(
        db, subscription_id, day_date, body.delivery_address, body.delivery_window, user_id=user_id
    )
    return DayResponse.for_client(day)


# ============================================================================
# Purchases
# ============================================================================


@router.post(
    "/{subscription_id}/premium/topup",
    response_model=PaymentInitResponse,
    responses=error_responses(400, 404, 422, 502),
)
def topup_premium(
    subscription_id: UUID,
    body: PremiumTopupRequest,
    user_id: Optional[UUID] = Query(None, description="Acting user"),
    db: Session = Depends(get_db_session),
):
    """Start a premium credit purchase."""
    return BillingService.create_premium_topup(
        db,
        subscription_id,
        body.count,
        user_id=user_id,
        success_url=body.success_url,
        back_url=body.back_url,
    )


@router.post(
    "/{subscription_id}/addons/one-time",
    response_model=PaymentInitResponse,
    responses=error_responses(400, 404, 409, 422, 502),
)
def purchase_addon(
    subscription_id: UUID,
    body: AddonPurchaseRequest,
    user_id: Optional[UUID] = Query(None, description="Acting user"),
    db: Session = Depends(get_db_session),
):
    """Start a one-time add-on purchase for a future open day."""
    return BillingService.create_addon_purchase(
        db,
        subscription_id,
        body.addon_id,
        body.date,
        user_id=user_id,
        success_url=body.success_url,
        back_url=body.back_url,
    )
