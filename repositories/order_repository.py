"""
Order Repository - Data access layer for one-time orders
"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import Order
from domain.enums import OrderStatus


class OrderRepository(BaseRepository[Order]):
    """Repository for one-time order data access"""

    def __init__(self, db: Session):
        super().__init__(db, Order)

    def get_by_id(self, order_id: UUID) -> Optional[Order]:
        """Get order by ID"""
        return self.db.query(Order).filter(Order.order_id == order_id).first()

    def confirm_paid(
        self,
        order_id: UUID,
        confirmed_at: datetime,
        payment_id: Optional[UUID] = None,
        provider_payment_id: Optional[str] = None,
    ) -> bool:
        """Confirm an order that is still waiting in ``created``"""
        values = {
            "status": OrderStatus.CONFIRMED.value,
            "payment_status": "paid",
            "confirmed_at": confirmed_at,
        }
        if payment_id is not None:
            values["payment_id"] = payment_id
        if provider_payment_id:
            values["provider_payment_id"] = provider_payment_id
        return self._conditional_update(
            Order.order_id == order_id,
            Order.status == OrderStatus.CREATED.value,
            **values,
        )
