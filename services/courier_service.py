from typing import Optional
from sqlalchemy.orm import Session
import logging
import uuid

from app import clock
from app.exceptions import (
    InsufficientCreditsError,
    NotFoundError,
    ServiceError,
    ServiceValidationError,
)
from domain.enums import DeliveryStatus
from domain.models import Delivery, atomic
from repositories import (
    ActivityLogRepository,
    DayRepository,
    DeliveryRepository,
    SubscriptionRepository,
)
from services.fulfillment_service import FulfillmentService
from services.notification_service import NotificationService
from services.skip_service import SkipService, SkipStatus

logger = logging.getLogger("mealpass.courier")

_OPEN_DELIVERY = [DeliveryStatus.SCHEDULED, DeliveryStatus.OUT_FOR_DELIVERY]


class CourierService:
    @staticmethod
    def list_today_deliveries(db: Session):
        return DeliveryRepository(db).list_for_date(clock.today())

    @staticmethod
    def _get_delivery(db: Session, delivery_id: uuid.UUID) -> Delivery:
        delivery = DeliveryRepository(db).get_by_id(delivery_id)
        if delivery is None:
            raise NotFoundError("Delivery not found")
        return delivery

    @staticmethod
    def _notify_subscriber(db: Session, delivery: Delivery, title: str, body: str) -> None:
        sub = SubscriptionRepository(db).get_by_id(delivery.subscription_id)
        if sub is not None:
            NotificationService.notify(
                db, sub.user_id, title, body, {"delivery_id": delivery.delivery_id}
            )

    @staticmethod
    def mark_arriving_soon(
        db: Session,
        delivery_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        actor_role: str = "courier",
    ) -> Delivery:
        """Flag the delivery as on its way and tell the subscriber"""
        delivery = CourierService._get_delivery(db, delivery_id)
        with atomic(db):
            DeliveryRepository(db).set_status(
                delivery.delivery_id, _OPEN_DELIVERY, DeliveryStatus.OUT_FOR_DELIVERY
            )
            ActivityLogRepository(db).write(
                "delivery",
                delivery.delivery_id,
                "arriving_soon",
                by_role=actor_role,
                by_user_id=actor_id,
                meta={"delivery_id": str(delivery.delivery_id)},
            )
        CourierService._notify_subscriber(
            db, delivery, "Order on the way", "Your order will arrive shortly"
        )
        return delivery

    @staticmethod
    def mark_delivered(
        db: Session,
        delivery_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        actor_role: str = "courier",
    ) -> Delivery:
        """
        Confirm a delivery: fulfill the day, then close the delivery.

        A delivery that is already delivered is returned unchanged.

        Raises:
            NotFoundError: Delivery or day missing
            InsufficientCreditsError: The day could not be charged
            ConflictError: INVALID_TRANSITION if the day cannot be fulfilled
        """
        delivery = CourierService._get_delivery(db, delivery_id)
        if delivery.status == DeliveryStatus.DELIVERED.value:
            return delivery

        try:
            with atomic(db):
                result = FulfillmentService.fulfill_subscription_day(db, day_id=delivery.day_id)
                result.raise_for_failure()
                DeliveryRepository(db).set_status(
                    delivery.delivery_id,
                    _OPEN_DELIVERY,
                    DeliveryStatus.DELIVERED,
                    delivered_at=clock.utcnow(),
                )
                ActivityLogRepository(db).write(
                    "delivery",
                    delivery.delivery_id,
                    "delivered",
                    by_role=actor_role,
                    by_user_id=actor_id,
                    meta={
                        "deducted_credits": result.deducted_credits,
                        "subscription_id": str(delivery.subscription_id),
                    },
                )
        except ServiceError:
            raise
        except Exception:
            logger.exception("Delivery confirmation failed for %s", delivery_id)
            raise

        logger.info("Delivery %s delivered", delivery_id)
        CourierService._notify_subscriber(
            db, delivery, "Delivered", "Your order was delivered successfully"
        )
        return delivery

    @staticmethod
    def mark_cancelled(
        db: Session,
        delivery_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
        actor_role: str = "courier",
    ) -> Delivery:
        """
        Courier cancellation of a delivery.

        Charged exactly like a skip of the day (past lock allowed), including
        validity compensation within the plan allowance.

        Raises:
            NotFoundError: Delivery, subscription or day missing
            ServiceValidationError: ALREADY_DELIVERED / ALREADY_FULFILLED
            InsufficientCreditsError: The skip could not be charged
        """
        delivery = CourierService._get_delivery(db, delivery_id)
        if delivery.status == DeliveryStatus.CANCELLED.value:
            return delivery
        if delivery.status == DeliveryStatus.DELIVERED.value:
            raise ServiceValidationError("Cannot cancel delivered order", code="ALREADY_DELIVERED")

        sub = SubscriptionRepository(db).get_by_id(delivery.subscription_id)
        if sub is None:
            raise NotFoundError("Subscription not found")
        day = DayRepository(db).get_by_id(delivery.day_id)
        if day is None:
            raise NotFoundError("Day not found")

        try:
            with atomic(db):
                outcome = SkipService.apply_skip_for_date(db, sub, day.date, allow_locked=True)
                if outcome.status == SkipStatus.FULFILLED:
                    raise ServiceValidationError(
                        "Cannot cancel fulfilled order", code="ALREADY_FULFILLED"
                    )
                if outcome.status == SkipStatus.INSUFFICIENT_CREDITS:
                    raise InsufficientCreditsError("Not enough credits")
                DeliveryRepository(db).set_status(
                    delivery.delivery_id,
                    _OPEN_DELIVERY,
                    DeliveryStatus.CANCELLED,
                    cancelled_at=clock.utcnow(),
                )
                ActivityLogRepository(db).write(
                    "delivery",
                    delivery.delivery_id,
                    "cancelled",
                    by_role=actor_role,
                    by_user_id=actor_id,
                    meta={
                        "subscription_id": str(delivery.subscription_id),
                        "compensated": outcome.compensated_date is not None,
                    },
                )
        except ServiceError:
            raise
        except Exception:
            logger.exception("Delivery cancellation failed for %s", delivery_id)
            raise

        logger.info("Delivery %s cancelled (%s)", delivery_id, outcome.status.value)
        CourierService._notify_subscriber(
            db,
            delivery,
            "Delivery cancelled",
            "Today's delivery was cancelled; you will be compensated within your skip allowance",
        )
        return delivery
