"""
Payment Repository - Data access layer for provider payments
"""

from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repositories.base import BaseRepository
from domain.models import Payment


class PaymentRepository(BaseRepository[Payment]):
    """Repository for payment data access"""

    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def get_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Get payment by ID"""
        return self.db.query(Payment).filter(Payment.payment_id == payment_id).first()

    def find_by_provider_ids(
        self,
        provider: str,
        provider_payment_id: Optional[str] = None,
        provider_invoice_id: Optional[str] = None,
    ) -> Optional[Payment]:
        """Find a payment by either provider id (payment id preferred)"""
        clauses = []
        if provider_payment_id:
            clauses.append(Payment.provider_payment_id == provider_payment_id)
        if provider_invoice_id:
            clauses.append(Payment.provider_invoice_id == provider_invoice_id)
        if not clauses:
            return None
        candidates = (
            self.db.query(Payment)
            .filter(Payment.provider == provider, or_(*clauses))
            .all()
        )
        for candidate in candidates:
            if provider_payment_id and candidate.provider_payment_id == provider_payment_id:
                return candidate
        return candidates[0] if candidates else None

    def create_or_get(self, payment: Payment) -> Tuple[Payment, bool]:
        """
        Insert a payment inside a savepoint.

        Handles race conditions: if a concurrent callback inserted the same
        provider ids first, the winner's row is returned with created=False.
        """
        try:
            with self.db.begin_nested():
                self.db.add(payment)
                self.db.flush()
            return payment, True
        except IntegrityError:
            existing = self.find_by_provider_ids(
                payment.provider,
                provider_payment_id=payment.provider_payment_id,
                provider_invoice_id=payment.provider_invoice_id,
            )
            if existing is None:
                raise
            return existing, False

    def claim(self, payment_id: UUID) -> bool:
        """Flip applied false -> true; only one caller ever gets True"""
        return self._conditional_update(
            Payment.payment_id == payment_id,
            Payment.applied.is_(False),
            applied=True,
        )

    def record_status(
        self,
        payment: Payment,
        status: str,
        provider_payment_id: Optional[str] = None,
        paid_at: Optional[datetime] = None,
    ) -> Payment:
        """Persist the latest normalized provider status"""
        payment.status = status
        if provider_payment_id and not payment.provider_payment_id:
            payment.provider_payment_id = provider_payment_id
        if paid_at is not None and payment.paid_at is None:
            payment.paid_at = paid_at
        self.db.flush()
        return payment

    def merge_metadata(self, payment_id: UUID, **entries) -> None:
        """Merge keys into the payment's metadata"""
        payment = self.get_by_id(payment_id)
        if payment is None:
            return
        payment.meta = {**(payment.meta or {}), **entries}
        self.db.flush()
