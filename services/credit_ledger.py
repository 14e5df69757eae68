"""
Credit ledger: the only code path that changes a subscription's balances.

Each operation is one guarded UPDATE. A debit whose guard does not hold
affected zero rows and raised; nothing was written. Called outside any
transaction an operation commits on its own; called inside ``atomic`` it
joins the enclosing unit (as a savepoint).
"""

from sqlalchemy.orm import Session
import logging
import uuid

from app.exceptions import (
    InsufficientCreditsError,
    NotFoundError,
    ServiceValidationError,
)
from domain.models import atomic
from repositories import SubscriptionRepository

logger = logging.getLogger("mealpass.ledger")


def _check_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ServiceValidationError(
            "Credit amount must be a positive integer",
            details={"amount": amount},
            code="INVALID_AMOUNT",
        )
    return amount


class CreditLedger:
    @staticmethod
    def debit(
        db: Session, subscription_id: uuid.UUID, amount: int, count_skip: bool = False
    ) -> None:
        """
        Consume meal credits.

        Args:
            db: Database session
            subscription_id: Subscription to debit
            amount: Positive number of meals
            count_skip: Also bump skipped_count in the same statement

        Raises:
            ServiceValidationError: If amount is not a positive integer
            InsufficientCreditsError: If remaining_meals < amount (nothing written)
        """
        amount = _check_amount(amount)
        with atomic(db):
            if not SubscriptionRepository(db).debit_meals(
                subscription_id, amount, count_skip=count_skip
            ):
                logger.info(
                    "Debit refused: subscription=%s amount=%s", subscription_id, amount
                )
                raise InsufficientCreditsError("Not enough credits")
        logger.debug("Debited %s meals from subscription %s", amount, subscription_id)

    @staticmethod
    def credit(db: Session, subscription_id: uuid.UUID, amount: int) -> None:
        """
        Return meal credits (refund, compensation).

        Raises:
            ServiceValidationError: If amount is not a positive integer
            NotFoundError: If the subscription does not exist
        """
        amount = _check_amount(amount)
        with atomic(db):
            if not SubscriptionRepository(db).credit_meals(subscription_id, amount):
                raise NotFoundError(f"Subscription not found: {subscription_id}")
        logger.debug("Credited %s meals to subscription %s", amount, subscription_id)

    @staticmethod
    def debit_premium(db: Session, subscription_id: uuid.UUID, amount: int) -> None:
        """
        Consume premium credits.

        Raises:
            ServiceValidationError: If amount is not a positive integer
            InsufficientCreditsError: INSUFFICIENT_PREMIUM if premium_remaining < amount
        """
        amount = _check_amount(amount)
        with atomic(db):
            if not SubscriptionRepository(db).debit_premium(subscription_id, amount):
                logger.info(
                    "Premium debit refused: subscription=%s amount=%s",
                    subscription_id,
                    amount,
                )
                raise InsufficientCreditsError(
                    "Not enough premium credits", code="INSUFFICIENT_PREMIUM"
                )

    @staticmethod
    def credit_premium(db: Session, subscription_id: uuid.UUID, amount: int) -> None:
        """
        Add premium credits (top-up, refund of a removed premium selection).

        Raises:
            ServiceValidationError: If amount is not a positive integer
            NotFoundError: If the subscription does not exist
        """
        amount = _check_amount(amount)
        with atomic(db):
            if not SubscriptionRepository(db).credit_premium(subscription_id, amount):
                raise NotFoundError(f"Subscription not found: {subscription_id}")
