from decimal import Decimal, ROUND_HALF_UP
from datetime import timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging
import uuid

from adapters import catalog_adapter
from adapters.moyasar_client import InvoiceResult, get_invoice_client
from app import clock
from app.clock import parse_day_date
from app.config import settings
from app.exceptions import ConflictError, NotFoundError, ServiceValidationError
from domain.enums import DayStatus, DeliveryMode, PaymentStatus, PaymentType, SubscriptionStatus
from domain.models import Payment, Plan, Subscription, atomic
from repositories import (
    ActivityLogRepository,
    DayRepository,
    PaymentRepository,
    PlanRepository,
    SubscriptionRepository,
)
from services import validation
from services.settings_service import SettingsService

logger = logging.getLogger("mealpass.billing")


def _decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def to_minor_units(amount) -> int:
    """Major currency units to integer minor units (halalas), rounded half up"""
    return int((_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _callback_url() -> str:
    return f"{settings.app_url}{settings.api_prefix}/webhooks/moyasar"


def _redirects(success_url: Optional[str], back_url: Optional[str]) -> Dict[str, str]:
    return {
        "success_url": success_url or f"{settings.app_url}/payments/success",
        "back_url": back_url or f"{settings.app_url}/payments/cancel",
    }


def _check_count(count) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise ServiceValidationError("Invalid premium count", code="INVALID")
    return count


class BillingService:
    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    @staticmethod
    def _get_plan(db: Session, plan_id: uuid.UUID) -> Plan:
        plan = PlanRepository(db).get_active(plan_id)
        if plan is None:
            raise NotFoundError("Plan not found")
        return plan

    @staticmethod
    def quote(
        db: Session, plan: Plan, premium_count: int, addon_ids: List[str]
    ) -> Dict[str, Any]:
        """
        Price a checkout.

        Recurring add-ons are charged for every plan day, one-time add-ons
        once. Unknown or inactive add-ons are ignored.
        """
        premium_price = _decimal(SettingsService.premium_price(db))
        addons = [a for a in (catalog_adapter.get_addon(i) for i in addon_ids) if a]

        addons_sum = Decimal("0")
        for addon in addons:
            price = _decimal(addon.get("price", 0))
            if addon.get("type") == "subscription":
                addons_sum += price * plan.days_count
            else:
                addons_sum += price

        premium_sum = premium_price * premium_count
        total = _decimal(plan.price) + premium_sum + addons_sum
        return {
            "total": total,
            "breakdown": {"plan": _decimal(plan.price), "premium": premium_sum, "addons": addons_sum},
            "premium_price": premium_price,
            "addons": addons,
        }

    @staticmethod
    def preview_checkout(
        db: Session, plan_id: uuid.UUID, premium_count: int = 0, addon_ids: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        plan = BillingService._get_plan(db, plan_id)
        quote = BillingService.quote(db, plan, premium_count, addon_ids or [])
        return {"total": quote["total"], "breakdown": quote["breakdown"]}

    @staticmethod
    def checkout_subscription(
        db: Session,
        user_id: uuid.UUID,
        plan_id: uuid.UUID,
        delivery_mode: str,
        premium_count: int = 0,
        addon_ids: Optional[List[str]] = None,
        delivery_address: Optional[dict] = None,
        delivery_window: Optional[str] = None,
        start_date=None,
        success_url: Optional[str] = None,
        back_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a subscription waiting for payment and its activation invoice.

        The subscription becomes active (and gets its day calendar) when the
        provider reports the invoice paid.

        Raises:
            NotFoundError: Plan missing or inactive
            ServiceValidationError: INVALID delivery details or premium count
            PaymentProviderError: Invoice creation failed (nothing persisted)
        """
        plan = BillingService._get_plan(db, plan_id)
        if premium_count:
            _check_count(premium_count)
        try:
            mode = DeliveryMode(delivery_mode)
        except ValueError:
            raise ServiceValidationError("Missing deliveryMode", code="INVALID")
        if mode == DeliveryMode.DELIVERY:
            if not delivery_address:
                raise ServiceValidationError("Missing deliveryAddress", code="INVALID")
            windows = SettingsService.delivery_windows(db)
            if delivery_window and windows and delivery_window not in windows:
                raise ServiceValidationError("Invalid delivery window", code="INVALID")

        quote = BillingService.quote(db, plan, premium_count, addon_ids or [])
        start = parse_day_date(start_date) if start_date else clock.today()
        end = start + timedelta(days=plan.days_count - 1)
        total_meals = plan.days_count * plan.meals_per_day
        amount = to_minor_units(quote["total"])
        subscription_id = uuid.uuid4()

        invoice = get_invoice_client().create_invoice(
            amount=amount,
            description=f"Subscription ({plan.name})",
            callback_url=_callback_url(),
            metadata={
                "type": PaymentType.SUBSCRIPTION_ACTIVATION.value,
                "subscription_id": str(subscription_id),
                "user_id": str(user_id),
            },
            **_redirects(success_url, back_url),
        )

        with atomic(db):
            subscription = SubscriptionRepository(db).create(
                Subscription(
                    subscription_id=subscription_id,
                    user_id=user_id,
                    plan_id=plan.plan_id,
                    status=SubscriptionStatus.PENDING_PAYMENT.value,
                    total_meals=total_meals,
                    remaining_meals=total_meals,
                    premium_remaining=premium_count,
                    premium_price=quote["premium_price"],
                    addon_subscriptions=[
                        {
                            "addon_id": str(a.get("_id")),
                            "name": a.get("name"),
                            "price": str(a.get("price")),
                            "type": a.get("type"),
                        }
                        for a in quote["addons"]
                    ],
                    delivery_mode=mode.value,
                    delivery_address=delivery_address,
                    delivery_window=delivery_window,
                    start_date=start,
                    end_date=end,
                    validity_end_date=end,
                )
            )
            payment = BillingService._record_invoice(
                db,
                invoice,
                PaymentType.SUBSCRIPTION_ACTIVATION,
                amount,
                user_id,
                subscription_id,
                {"subscription_id": str(subscription_id), "user_id": str(user_id)},
            )

        logger.info("Checkout for user %s: subscription %s, invoice %s", user_id, subscription_id, invoice.id)
        return {
            "payment_url": invoice.url,
            "invoice_id": invoice.id,
            "payment_id": payment.payment_id,
            "subscription_id": subscription.subscription_id,
            "total": quote["total"],
        }

    # ------------------------------------------------------------------
    # Purchases on an active subscription
    # ------------------------------------------------------------------

    @staticmethod
    def create_premium_topup(
        db: Session,
        subscription_id: uuid.UUID,
        count: int,
        user_id: Optional[uuid.UUID] = None,
        success_url: Optional[str] = None,
        back_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Invoice ``count`` premium credits at the configured unit price.

        Credits are granted by the webhook once the invoice is paid.
        """
        count = _check_count(count)
        sub = SubscriptionRepository(db).get_by_id(subscription_id)
        if sub is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        validation.ensure_active(sub)

        amount = to_minor_units(_decimal(SettingsService.premium_price(db)) * count)
        user_id = user_id or sub.user_id
        metadata = {
            "type": PaymentType.PREMIUM_TOPUP.value,
            "subscription_id": str(sub.subscription_id),
            "user_id": str(user_id),
            "premium_count": count,
        }
        invoice = get_invoice_client().create_invoice(
            amount=amount,
            description=f"Premium top-up ({count})",
            callback_url=_callback_url(),
            metadata=metadata,
            **_redirects(success_url, back_url),
        )
        with atomic(db):
            payment = BillingService._record_invoice(
                db, invoice, PaymentType.PREMIUM_TOPUP, amount, user_id, sub.subscription_id, metadata
            )
        return {"payment_url": invoice.url, "invoice_id": invoice.id, "payment_id": payment.payment_id}

    @staticmethod
    def create_addon_purchase(
        db: Session,
        subscription_id: uuid.UUID,
        addon_id: str,
        day_date,
        user_id: Optional[uuid.UUID] = None,
        success_url: Optional[str] = None,
        back_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Invoice a one-time add-on for a future open day.

        Raises:
            ServiceValidationError: Missing add-on id or bad date
            NotFoundError: Subscription or active one-time add-on missing
            SubscriptionInactiveError: Not active or expired
            ConflictError: LOCKED if the day is no longer open
        """
        if not addon_id or not day_date:
            raise ServiceValidationError("Missing addonId or date", code="INVALID")
        day_date = parse_day_date(day_date)

        sub = SubscriptionRepository(db).get_by_id(subscription_id)
        if sub is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        validation.ensure_active(sub, day_date)
        validation.validate_future_date(sub, day_date)

        addon = catalog_adapter.get_addon(addon_id)
        if not addon or addon.get("type") != "one_time":
            raise NotFoundError("Addon not found")

        day = DayRepository(db).get_for_date(subscription_id, day_date)
        if day is not None and day.status != DayStatus.OPEN.value:
            raise ConflictError("Day is locked", code="LOCKED")

        amount = to_minor_units(addon.get("price", 0))
        user_id = user_id or sub.user_id
        metadata = {
            "type": PaymentType.ONE_TIME_ADDON.value,
            "subscription_id": str(sub.subscription_id),
            "user_id": str(user_id),
            "addon_id": str(addon_id),
            "date": day_date.isoformat(),
        }
        invoice = get_invoice_client().create_invoice(
            amount=amount,
            description=f"Add-on ({addon.get('name')})",
            callback_url=_callback_url(),
            metadata=metadata,
            **_redirects(success_url, back_url),
        )
        with atomic(db):
            if day is None:
                DayRepository(db).get_or_create(subscription_id, day_date)
            payment = BillingService._record_invoice(
                db, invoice, PaymentType.ONE_TIME_ADDON, amount, user_id, sub.subscription_id, metadata
            )
        return {"payment_url": invoice.url, "invoice_id": invoice.id, "payment_id": payment.payment_id}

    @staticmethod
    def _record_invoice(
        db: Session,
        invoice: InvoiceResult,
        payment_type: PaymentType,
        amount: int,
        user_id: Optional[uuid.UUID],
        subscription_id: Optional[uuid.UUID],
        metadata: Dict[str, Any],
    ) -> Payment:
        payment, _ = PaymentRepository(db).create_or_get(
            Payment(
                provider=settings.payment_provider,
                type=payment_type.value,
                status=PaymentStatus.INITIATED.value,
                amount=amount,
                currency=invoice.currency,
                user_id=user_id,
                subscription_id=subscription_id,
                provider_invoice_id=invoice.id,
                meta=dict(metadata),
            )
        )
        ActivityLogRepository(db).write(
            "payment",
            payment.payment_id,
            "payment_initiated",
            by_role="client",
            by_user_id=user_id,
            meta={"type": payment_type.value, "amount": amount, "invoice_id": invoice.id},
        )
        return payment
