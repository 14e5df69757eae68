"""
Credit ledger tests with real (SQLite) transactions.

Verifies guarded debits never go negative, refusals write nothing and
ledger calls join an enclosing unit.
"""

import uuid

import pytest

from app.exceptions import InsufficientCreditsError, NotFoundError, ServiceValidationError
from domain.models import abort, atomic
from services import CreditLedger
from test_fixtures import make_plan, make_subscription


def test_debit_reduces_remaining_meals(db_session):
    sub = make_subscription(db_session, remaining_meals=10)

    CreditLedger.debit(db_session, sub.subscription_id, 4)

    db_session.refresh(sub)
    assert sub.remaining_meals == 6
    assert sub.skipped_count == 0


def test_debit_with_skip_counter(db_session):
    sub = make_subscription(db_session, remaining_meals=10)

    CreditLedger.debit(db_session, sub.subscription_id, 2, count_skip=True)

    db_session.refresh(sub)
    assert sub.remaining_meals == 8
    assert sub.skipped_count == 1


def test_debit_exact_balance_reaches_zero(db_session):
    sub = make_subscription(db_session, remaining_meals=2)

    CreditLedger.debit(db_session, sub.subscription_id, 2)

    db_session.refresh(sub)
    assert sub.remaining_meals == 0


def test_debit_refused_leaves_balance_untouched(db_session):
    sub = make_subscription(db_session, remaining_meals=1)

    with pytest.raises(InsufficientCreditsError) as exc:
        CreditLedger.debit(db_session, sub.subscription_id, 2, count_skip=True)

    assert exc.value.code == "INSUFFICIENT_CREDITS"
    db_session.refresh(sub)
    assert sub.remaining_meals == 1
    assert sub.skipped_count == 0


@pytest.mark.parametrize("amount", [0, -1, True, 1.5, "2"])
def test_invalid_amounts_rejected(db_session, amount):
    sub = make_subscription(db_session, remaining_meals=10)

    with pytest.raises(ServiceValidationError) as exc:
        CreditLedger.debit(db_session, sub.subscription_id, amount)

    assert exc.value.code == "INVALID_AMOUNT"
    db_session.refresh(sub)
    assert sub.remaining_meals == 10


def test_credit_and_missing_subscription(db_session):
    sub = make_subscription(db_session, remaining_meals=3)

    CreditLedger.credit(db_session, sub.subscription_id, 2)
    db_session.refresh(sub)
    assert sub.remaining_meals == 5

    with pytest.raises(NotFoundError):
        CreditLedger.credit(db_session, uuid.uuid4(), 1)


def test_premium_balance(db_session):
    sub = make_subscription(db_session, premium_remaining=1)

    CreditLedger.credit_premium(db_session, sub.subscription_id, 2)
    CreditLedger.debit_premium(db_session, sub.subscription_id, 3)
    db_session.refresh(sub)
    assert sub.premium_remaining == 0

    with pytest.raises(InsufficientCreditsError) as exc:
        CreditLedger.debit_premium(db_session, sub.subscription_id, 1)
    assert exc.value.code == "INSUFFICIENT_PREMIUM"


def test_debit_joins_enclosing_unit(db_session):
    """A later failure in the same unit undoes the debit"""
    sub = make_subscription(db_session, remaining_meals=10)

    with pytest.raises(RuntimeError):
        with atomic(db_session):
            CreditLedger.debit(db_session, sub.subscription_id, 2)
            raise RuntimeError("boom")

    db_session.refresh(sub)
    assert sub.remaining_meals == 10


def test_refused_debit_inside_unit_keeps_earlier_work(db_session):
    """The refusal rolls back only its savepoint; the caller decides the rest"""
    plan = make_plan(db_session)
    first = make_subscription(db_session, plan=plan, remaining_meals=10)
    second = make_subscription(db_session, plan=plan, remaining_meals=0)

    with atomic(db_session):
        CreditLedger.debit(db_session, first.subscription_id, 2)
        with pytest.raises(InsufficientCreditsError):
            CreditLedger.debit(db_session, second.subscription_id, 2)

    db_session.refresh(first)
    db_session.refresh(second)
    assert first.remaining_meals == 8
    assert second.remaining_meals == 0


def test_abort_is_idempotent(db_session):
    sub = make_subscription(db_session, remaining_meals=10)

    abort(db_session)
    abort(db_session)

    with pytest.raises(RuntimeError):
        with atomic(db_session):
            CreditLedger.debit(db_session, sub.subscription_id, 2)
            abort(db_session)
            raise RuntimeError("handler failed after rolling back")

    db_session.refresh(sub)
    assert sub.remaining_meals == 10
