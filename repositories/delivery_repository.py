"""
Delivery Repository - Data access layer for courier deliveries
"""

from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import Delivery, SubscriptionDay
from domain.enums import DeliveryStatus


class DeliveryRepository(BaseRepository[Delivery]):
    """Repository for delivery data access"""

    def __init__(self, db: Session):
        super().__init__(db, Delivery)

    def get_by_id(self, delivery_id: UUID) -> Optional[Delivery]:
        """Get delivery by ID"""
        return self.db.query(Delivery).filter(Delivery.delivery_id == delivery_id).first()

    def get_by_day_id(self, day_id: UUID) -> Optional[Delivery]:
        """Get the delivery attached to a day"""
        return self.db.query(Delivery).filter(Delivery.day_id == day_id).first()

    def list_for_date(self, day_date: date) -> List[Delivery]:
        """Courier view: deliveries whose day falls on a date"""
        return (
            self.db.query(Delivery)
            .join(SubscriptionDay, SubscriptionDay.day_id == Delivery.day_id)
            .filter(SubscriptionDay.date == day_date)
            .order_by(Delivery.created_at)
            .all()
        )

    def create_for_day(
        self,
        day_id: UUID,
        subscription_id: UUID,
        address,
        window: Optional[str],
        status: str = DeliveryStatus.OUT_FOR_DELIVERY.value,
    ) -> Tuple[Delivery, bool]:
        """Create the delivery of a day; an existing one is returned untouched"""
        existing = self.get_by_day_id(day_id)
        if existing is not None:
            return existing, False
        delivery = Delivery(
            day_id=day_id,
            subscription_id=subscription_id,
            address=address,
            window=window,
            status=status,
        )
        try:
            with self.db.begin_nested():
                self.db.add(delivery)
                self.db.flush()
            return delivery, True
        except IntegrityError:
            # Race - another request created it
            return self.get_by_day_id(day_id), False

    def set_status(self, delivery_id: UUID, from_statuses, to_status: str, **values) -> bool:
        """Guarded delivery status write"""
        return self._conditional_update(
            Delivery.delivery_id == delivery_id,
            Delivery.status.in_([DeliveryStatus(s).value for s in from_statuses]),
            status=DeliveryStatus(to_status).value,
            **values,
        )
