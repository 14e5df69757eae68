"""
Domain effects of a paid provider payment, keyed by payment type.

Each handler runs after the payment's ``applied`` latch has been claimed and
inside the caller's transaction. A handler that cannot apply its effect
returns an ``EffectResult`` with a reason instead of raising; the reason is
stored on the payment for reconciliation.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, Optional
from sqlalchemy.orm import Session
import logging
import uuid

from app import clock
from app.clock import parse_day_date
from app.exceptions import NotFoundError, ServiceValidationError
from domain.enums import PaymentType, SubscriptionStatus
from domain.models import Payment
from repositories import (
    ActivityLogRepository,
    DayRepository,
    OrderRepository,
    SubscriptionRepository,
)
from services.credit_ledger import CreditLedger

logger = logging.getLogger("mealpass.payments")


@dataclass
class EffectResult:
    applied: bool
    reason: Optional[str] = None


def _meta(metadata: Dict[str, Any], *keys: str):
    """First non-empty metadata value among ``keys`` (snake or camel case)"""
    for key in keys:
        value = metadata.get(key)
        if value not in (None, ""):
            return value
    return None


def _uuid(value) -> Optional[uuid.UUID]:
    if value is None:
        return None
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except ValueError:
        return None


def _positive_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def apply_premium_topup(db: Session, payment: Payment, metadata: Dict[str, Any]) -> EffectResult:
    count = _positive_int(_meta(metadata, "premium_count", "premiumCount", "count"))
    subscription_id = _uuid(_meta(metadata, "subscription_id", "subscriptionId"))
    if count <= 0 or subscription_id is None:
        return EffectResult(False, "invalid_metadata")
    try:
        CreditLedger.credit_premium(db, subscription_id, count)
    except NotFoundError:
        return EffectResult(False, "subscription_not_found")
    ActivityLogRepository(db).write(
        "subscription",
        subscription_id,
        "premium_topup_webhook",
        meta={"count": count, "payment_id": str(payment.payment_id)},
    )
    return EffectResult(True)


def apply_one_time_addon(db: Session, payment: Payment, metadata: Dict[str, Any]) -> EffectResult:
    subscription_id = _uuid(_meta(metadata, "subscription_id", "subscriptionId"))
    addon_id = _meta(metadata, "addon_id", "addonId")
    raw_date = _meta(metadata, "date")
    if subscription_id is None or not addon_id or not raw_date:
        return EffectResult(False, "invalid_metadata")
    try:
        day_date = parse_day_date(raw_date)
    except ServiceValidationError:
        return EffectResult(False, "invalid_metadata")

    day_repo = DayRepository(db)
    day = day_repo.get_for_date(subscription_id, day_date, with_lock=True)
    if day is None:
        return EffectResult(False, "day_not_found")
    if not day_repo.add_one_time_addon(day, str(addon_id)):
        return EffectResult(False, f"day_not_open:{day.status}")
    ActivityLogRepository(db).write(
        "subscription_day",
        day.day_id,
        "one_time_addon_webhook",
        meta={
            "addon_id": str(addon_id),
            "date": day_date.isoformat(),
            "payment_id": str(payment.payment_id),
        },
    )
    return EffectResult(True)


def apply_subscription_activation(
    db: Session, payment: Payment, metadata: Dict[str, Any]
) -> EffectResult:
    subscription_id = _uuid(_meta(metadata, "subscription_id", "subscriptionId")) or payment.subscription_id
    if subscription_id is None:
        return EffectResult(False, "invalid_metadata")

    sub_repo = SubscriptionRepository(db)
    sub = sub_repo.get_by_id(subscription_id)
    if sub is None:
        return EffectResult(False, "subscription_not_found")
    if sub.status != SubscriptionStatus.PENDING_PAYMENT.value:
        return EffectResult(False, f"subscription_not_pending:{sub.status}")

    plan = sub.plan
    start = sub.start_date or clock.today()
    end = start + timedelta(days=plan.days_count - 1)
    if not sub_repo.activate(subscription_id, start, end):
        db.refresh(sub)
        return EffectResult(False, f"subscription_not_pending:{sub.status}")

    day_repo = DayRepository(db)
    if not day_repo.has_days(subscription_id):
        day_repo.bulk_create_calendar(subscription_id, start, plan.days_count)
    ActivityLogRepository(db).write(
        "subscription",
        subscription_id,
        "subscription_activated",
        meta={
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "payment_id": str(payment.payment_id),
        },
    )
    return EffectResult(True)


def apply_one_time_order(db: Session, payment: Payment, metadata: Dict[str, Any]) -> EffectResult:
    order_id = _uuid(_meta(metadata, "order_id", "orderId")) or payment.order_id
    if order_id is None:
        return EffectResult(False, "invalid_metadata")

    order_repo = OrderRepository(db)
    order = order_repo.get_by_id(order_id)
    if order is None:
        return EffectResult(False, "order_not_found")
    if not order_repo.confirm_paid(
        order_id,
        clock.utcnow(),
        payment_id=payment.payment_id,
        provider_payment_id=payment.provider_payment_id,
    ):
        db.refresh(order)
        return EffectResult(False, f"order_not_pending:{order.status}")
    ActivityLogRepository(db).write(
        "order",
        order_id,
        "order_payment_webhook",
        meta={"order_id": str(order_id), "payment_id": str(payment.payment_id)},
    )
    return EffectResult(True)


PAYMENT_EFFECTS: Dict[str, Callable[[Session, Payment, Dict[str, Any]], EffectResult]] = {
    PaymentType.PREMIUM_TOPUP.value: apply_premium_topup,
    PaymentType.ONE_TIME_ADDON.value: apply_one_time_addon,
    PaymentType.SUBSCRIPTION_ACTIVATION.value: apply_subscription_activation,
    PaymentType.ONE_TIME_ORDER.value: apply_one_time_order,
}


def apply_payment_effect(db: Session, payment: Payment) -> EffectResult:
    """Run the effect registered for the payment's type"""
    handler = PAYMENT_EFFECTS.get(payment.type)
    if handler is None:
        return EffectResult(False, f"unsupported_type:{payment.type}")
    result = handler(db, payment, dict(payment.meta or {}))
    logger.info(
        "Payment %s effect %s: applied=%s reason=%s",
        payment.payment_id,
        payment.type,
        result.applied,
        result.reason,
    )
    return result
