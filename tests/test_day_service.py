"""
Client day edits: meal selection with premium accounting, delivery overrides
and pickup preparation.
"""

import uuid

import pytest
from sqlalchemy import update

from app.exceptions import (
    ConflictError,
    InsufficientCreditsError,
    NotFoundError,
    ServiceValidationError,
)
from domain.models import Subscription, SubscriptionDay
from repositories import DayRepository
from services import DayService
from test_fixtures import EDITABLE, TODAY, TOMORROW, make_day, make_plan, make_subscription, set_setting


def test_selection_debits_and_refunds_premium(db_session):
    sub = make_subscription(db_session, premium_remaining=3)

    day = DayService.update_selection(db_session, sub.subscription_id, EDITABLE, [], ["p1", "p2"])

    assert day.premium_selections == ["p1", "p2"]
    db_session.refresh(sub)
    assert sub.premium_remaining == 1

    DayService.update_selection(db_session, sub.subscription_id, EDITABLE, ["m1"], ["p1"])

    db_session.refresh(sub)
    assert sub.premium_remaining == 2
    db_session.refresh(day)
    assert day.selections == ["m1"]


def test_resubmitting_same_selection_is_a_no_op(db_session):
    sub = make_subscription(db_session, premium_remaining=1)
    DayService.update_selection(db_session, sub.subscription_id, EDITABLE, ["m1"], ["p1"])

    DayService.update_selection(db_session, sub.subscription_id, EDITABLE, ["m1"], ["p1"])

    db_session.refresh(sub)
    assert sub.premium_remaining == 0


def test_selection_without_premium_balance(db_session):
    sub = make_subscription(db_session, premium_remaining=0)

    with pytest.raises(InsufficientCreditsError) as exc:
        DayService.update_selection(db_session, sub.subscription_id, EDITABLE, [], ["p1"])

    assert exc.value.code == "INSUFFICIENT_PREMIUM"
    assert DayRepository(db_session).get_for_date(sub.subscription_id, EDITABLE) is None


def test_selection_over_daily_cap(db_session):
    sub = make_subscription(db_session, plan=make_plan(db_session, meals_per_day=2))

    with pytest.raises(ServiceValidationError) as exc:
        DayService.update_selection(db_session, sub.subscription_id, EDITABLE, ["m1", "m2", "m3"])

    assert exc.value.code == "DAILY_CAP"


def test_selection_on_locked_day(db_session):
    sub = make_subscription(db_session)
    make_day(db_session, sub, EDITABLE, status="locked")

    with pytest.raises(ConflictError) as exc:
        DayService.update_selection(db_session, sub.subscription_id, EDITABLE, ["m1"])

    assert exc.value.code == "LOCKED"


def test_tomorrow_is_editable_before_cutoff(db_session):
    set_setting(db_session, "cutoff_time", "23:00")
    sub = make_subscription(db_session)

    day = DayService.update_selection(db_session, sub.subscription_id, TOMORROW, ["m1"])

    assert day.date == TOMORROW


def test_tomorrow_is_closed_after_cutoff(db_session):
    sub = make_subscription(db_session)

    with pytest.raises(ServiceValidationError) as exc:
        DayService.update_selection(db_session, sub.subscription_id, TOMORROW, ["m1"])

    assert exc.value.code == "LOCKED"


def test_today_is_not_editable(db_session):
    sub = make_subscription(db_session)

    with pytest.raises(ServiceValidationError) as exc:
        DayService.update_selection(db_session, sub.subscription_id, TODAY, ["m1"])

    assert exc.value.code == "INVALID_DATE"


def test_delivery_override_for_one_day(db_session):
    sub = make_subscription(db_session)
    address = {"line1": "Prince Sultan St 3", "city": "Riyadh"}

    day = DayService.update_delivery_override(
        db_session, sub.subscription_id, EDITABLE, delivery_address=address, delivery_window="12:00-15:00"
    )

    assert day.delivery_address_override == address
    assert day.delivery_window_override == "12:00-15:00"
    db_session.refresh(sub)
    assert sub.delivery_window == "08:00-11:00"


@pytest.mark.parametrize(
    "fields",
    [{}, {"delivery_window": "03:00-04:00"}],
)
def test_delivery_override_rejects_bad_input(db_session, fields):
    sub = make_subscription(db_session)

    with pytest.raises(ServiceValidationError) as exc:
        DayService.update_delivery_override(db_session, sub.subscription_id, EDITABLE, **fields)

    assert exc.value.code == "INVALID"


def test_delivery_details_on_pickup_subscription(db_session):
    sub = make_subscription(db_session, delivery_mode="pickup")

    with pytest.raises(ServiceValidationError):
        DayService.update_delivery_details(db_session, sub.subscription_id, delivery_window="12:00-15:00")


def test_delivery_details_updates_default(db_session):
    sub = make_subscription(db_session)

    updated = DayService.update_delivery_details(db_session, sub.subscription_id, delivery_window="12:00-15:00")

    assert updated.delivery_window == "12:00-15:00"


def test_prepare_pickup_locks_and_charges_once(db_session):
    sub = make_subscription(db_session, delivery_mode="pickup")

    day = DayService.prepare_pickup(db_session, sub.subscription_id, EDITABLE)
    again = DayService.prepare_pickup(db_session, sub.subscription_id, EDITABLE)

    assert again.day_id == day.day_id
    db_session.refresh(day)
    assert day.status == "locked"
    assert day.pickup_requested is True
    assert day.credits_deducted is True
    assert day.locked_snapshot is not None
    db_session.refresh(sub)
    assert sub.remaining_meals == 18


def test_prepare_pickup_of_existing_open_day(db_session):
    sub = make_subscription(db_session, delivery_mode="pickup")
    day = make_day(db_session, sub, EDITABLE, selections=["m1"])

    DayService.prepare_pickup(db_session, sub.subscription_id, EDITABLE)

    db_session.refresh(day)
    assert day.status == "locked"
    assert day.locked_snapshot["selections"] == ["m1"]


def test_prepare_pickup_without_credits(db_session):
    sub = make_subscription(db_session, delivery_mode="pickup", remaining_meals=1)

    with pytest.raises(InsufficientCreditsError):
        DayService.prepare_pickup(db_session, sub.subscription_id, EDITABLE)

    assert DayRepository(db_session).get_for_date(sub.subscription_id, EDITABLE) is None


def test_prepare_pickup_requires_pickup_mode(db_session):
    sub = make_subscription(db_session)

    with pytest.raises(ServiceValidationError) as exc:
        DayService.prepare_pickup(db_session, sub.subscription_id, EDITABLE)

    assert exc.value.code == "INVALID"


def test_missing_day_and_subscription(db_session):
    sub = make_subscription(db_session)

    with pytest.raises(NotFoundError):
        DayService.get_day(db_session, sub.subscription_id, EDITABLE)
    with pytest.raises(NotFoundError):
        DayService.get_days(db_session, uuid.uuid4())


def test_concurrent_premium_edit_is_not_charged_twice(db_session, monkeypatch):
    """Another edit adds the same premium meal between our read and our write"""
    sub = make_subscription(db_session, premium_remaining=3)
    day = make_day(db_session, sub, EDITABLE)
    unlocked_read = DayRepository.get_for_date
    interleaved = []

    def read_then_other_edit_commits(self, subscription_id, day_date, with_lock=False):
        found = unlocked_read(self, subscription_id, day_date, with_lock=with_lock)
        if not with_lock and not interleaved:
            interleaved.append(day_date)
            self.db.execute(
                update(SubscriptionDay)
                .where(SubscriptionDay.day_id == day.day_id)
                .values(premium_selections=["p1"])
                .execution_options(synchronize_session=False)
            )
            self.db.execute(
                update(Subscription)
                .where(Subscription.subscription_id == sub.subscription_id)
                .values(premium_remaining=2)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        return found

    monkeypatch.setattr(DayRepository, "get_for_date", read_then_other_edit_commits)

    DayService.update_selection(db_session, sub.subscription_id, EDITABLE, ["m1"], ["p1"])

    assert interleaved == [EDITABLE]
    db_session.refresh(sub)
    db_session.refresh(day)
    assert sub.premium_remaining == 2
    assert day.selections == ["m1"]
    assert day.premium_selections == ["p1"]
