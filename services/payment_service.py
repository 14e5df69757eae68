from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
import hmac
import logging
import uuid

from app import clock
from app.config import settings
from app.exceptions import ServiceValidationError, UnauthorizedError
from domain.enums import PaymentStatus, PaymentType
from domain.models import Payment, atomic
from repositories import ActivityLogRepository, PaymentRepository, SubscriptionRepository
from services.payment_effects import apply_payment_effect

logger = logging.getLogger("mealpass.payments")

_STATUSES = {s.value for s in PaymentStatus}


def normalize_payment_status(data: Dict[str, Any], event_type: Optional[str]) -> Optional[str]:
    """
    Provider status for an event: the explicit ``status`` field, else one
    derived from the event type (``payment_paid``, ``invoice.failed``...).
    """
    status = data.get("status") if isinstance(data, dict) else None
    if status:
        status = str(status).lower()
        if status == "cancelled":
            return PaymentStatus.CANCELED.value
        return status
    if not event_type:
        return None
    normalized = str(event_type).lower()
    if "paid" in normalized:
        return PaymentStatus.PAID.value
    if "failed" in normalized:
        return PaymentStatus.FAILED.value
    if "canceled" in normalized or "cancelled" in normalized:
        return PaymentStatus.CANCELED.value
    return None


def _uuid_or_none(value) -> Optional[uuid.UUID]:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def parse_amount(value) -> Optional[int]:
    """Amount in minor units; None when absent, 400 when not a non-negative integer"""
    if value is None or value == "":
        return None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    raise ServiceValidationError(
        "Amount must be a non-negative integer in minor units",
        code="INVALID",
        details={"amount": value},
    )


def _status_changes(payment: Payment, status: Optional[str]) -> bool:
    """
    Whether an event's status should overwrite the stored one.

    Refunds and cancellations always land; nothing moves back to
    ``initiated``, and a replayed paid event cannot undo a later refund.
    """
    if status not in _STATUSES or status == payment.status:
        return False
    if status == PaymentStatus.INITIATED.value:
        return False
    if status == PaymentStatus.PAID.value and payment.applied:
        return False
    return True


def _known_subscription(db: Session, metadata: Dict[str, Any]) -> Optional[uuid.UUID]:
    """Subscription referenced by the metadata, if it exists"""
    subscription_id = _uuid_or_none(metadata.get("subscription_id") or metadata.get("subscriptionId"))
    if subscription_id is None or not SubscriptionRepository(db).exists(subscription_id):
        return None
    return subscription_id


def _verify_secret(payload: Dict[str, Any]) -> None:
    secret = settings.moyasar_webhook_secret
    if not secret:
        return
    token = payload.get("secret_token")
    if not isinstance(token, str) or not hmac.compare_digest(token.encode(), secret.encode()):
        raise UnauthorizedError("Invalid webhook token")


class PaymentService:
    @staticmethod
    def handle_payment_event(db: Session, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply one provider webhook delivery.

        Safe to call any number of times with the same payload: the payment
        row is found by provider ids, and its domain effect runs only for the
        single caller that flips ``applied`` from false to true.

        Args:
            db: Database session
            payload: Raw webhook body

        Returns:
            {"payment_id", "status", "applied", "unapplied_reason"?, "message"?}

        Raises:
            UnauthorizedError: secret_token does not match
            ServiceValidationError: Neither payment nor invoice id present
        """
        if not isinstance(payload, dict):
            raise ServiceValidationError("Invalid webhook payload", code="INVALID")
        _verify_secret(payload)

        event_type = payload.get("type") or payload.get("event")
        data = payload.get("data") or payload.get("payment") or payload
        if not isinstance(data, dict):
            raise ServiceValidationError("Invalid webhook payload", code="INVALID")

        status = normalize_payment_status(data, event_type)
        is_paid = status == PaymentStatus.PAID.value
        provider_payment_id = data.get("id")
        provider_invoice_id = data.get("invoice_id") or data.get("invoiceId")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            metadata = {}
        if not provider_payment_id and not provider_invoice_id:
            raise ServiceValidationError("Missing payment identifiers", code="INVALID")
        provider_payment_id = str(provider_payment_id) if provider_payment_id else None
        provider_invoice_id = str(provider_invoice_id) if provider_invoice_id else None
        amount = parse_amount(data.get("amount"))
        provider = settings.payment_provider

        with atomic(db):
            repo = PaymentRepository(db)
            payment = repo.find_by_provider_ids(provider, provider_payment_id, provider_invoice_id)
            if payment is None:
                payment, created = repo.create_or_get(
                    Payment(
                        provider=provider,
                        type=metadata.get("type") or PaymentType.PREMIUM_TOPUP.value,
                        status=PaymentStatus.PAID.value if is_paid else PaymentStatus.INITIATED.value,
                        amount=amount or 0,
                        currency=data.get("currency") or settings.currency,
                        user_id=_uuid_or_none(metadata.get("user_id") or metadata.get("userId")),
                        subscription_id=_known_subscription(db, metadata),
                        provider_payment_id=provider_payment_id,
                        provider_invoice_id=provider_invoice_id,
                        meta=dict(metadata),
                        paid_at=clock.utcnow() if is_paid else None,
                    )
                )
                if created:
                    logger.info(
                        "Payment recorded from webhook: payment=%s invoice=%s",
                        provider_payment_id,
                        provider_invoice_id,
                    )
            else:
                if provider_invoice_id and not payment.provider_invoice_id:
                    payment.provider_invoice_id = provider_invoice_id
                if amount:
                    payment.amount = amount
                if data.get("currency"):
                    payment.currency = data["currency"]
                if metadata:
                    payment.meta = {**(payment.meta or {}), **metadata}

            if _status_changes(payment, status):
                repo.record_status(
                    payment,
                    status,
                    provider_payment_id=provider_payment_id,
                    paid_at=clock.utcnow() if is_paid else None,
                )
            elif provider_payment_id and not payment.provider_payment_id:
                payment.provider_payment_id = provider_payment_id

            result: Dict[str, Any] = {
                "payment_id": payment.payment_id,
                "status": payment.status,
                "applied": bool(payment.applied),
            }
            if not is_paid:
                result["message"] = "Ignored non-paid status"
                return result

            if not repo.claim(payment.payment_id):
                logger.info("Payment %s already applied; ignoring replay", payment.payment_id)
                result["applied"] = True
                return result

            reason = PaymentService._run_effect(db, payment)
            result["applied"] = True
            result["status"] = PaymentStatus.PAID.value
            if reason:
                repo.merge_metadata(payment.payment_id, unapplied_reason=reason)
                ActivityLogRepository(db).write(
                    "payment",
                    payment.payment_id,
                    "payment_unapplied",
                    meta={"reason": reason, "provider_payment_id": provider_payment_id},
                )
                result["unapplied_reason"] = reason
                logger.warning("Payment %s not applied: %s", payment.payment_id, reason)
            return result

    @staticmethod
    def _run_effect(db: Session, payment: Payment) -> Optional[str]:
        """Run the payment's effect in a savepoint; returns the unapplied reason, if any"""
        try:
            with atomic(db):
                effect = apply_payment_effect(db, payment)
        except Exception as exc:
            logger.exception("Effect for payment %s raised", payment.payment_id)
            return f"effect_error:{type(exc).__name__}"
        return None if effect.applied else effect.reason
