"""
Kitchen board, day transitions, meal assignment and the courier flows that
end a delivery day.
"""

import uuid

import pytest

from app.exceptions import ConflictError, NotFoundError, ServiceValidationError
from domain.enums import DayStatus
from domain.models import Delivery, NotificationLog
from repositories import ActivityLogRepository, DayRepository, DeliveryRepository
from services import CourierService, KitchenService
from test_fixtures import EDITABLE, TODAY, make_day, make_plan, make_subscription


def _delivery(db, sub, day, status="out_for_delivery"):
    delivery = Delivery(
        day_id=day.day_id,
        subscription_id=sub.subscription_id,
        address=dict(sub.delivery_address),
        window=sub.delivery_window,
        status=status,
    )
    db.add(delivery)
    db.commit()
    return delivery


def test_kitchen_board_uses_effective_delivery(db_session):
    sub = make_subscription(
        db_session,
        addon_subscriptions=[{"addon_id": "juice", "name": "Juice", "price": "5.00", "type": "subscription"}],
    )
    make_day(
        db_session,
        sub,
        TODAY,
        status="locked",
        selections=["m1"],
        addons_one_time=["soup"],
        delivery_window_override="12:00-15:00",
        locked_snapshot={"custom_salads": [{"base": "greens"}]},
    )
    other = make_subscription(db_session)
    make_day(db_session, other, EDITABLE)

    board = KitchenService.list_daily(db_session, TODAY.isoformat())

    assert len(board) == 1
    entry = board[0]
    assert entry["effective_window"] == "12:00-15:00"
    assert entry["effective_address"] == sub.delivery_address
    assert entry["custom_salads"] == [{"base": "greens"}]
    assert [a["addon_id"] for a in entry["subscription_addons"]] == ["juice"]
    assert entry["kitchen_addons"][-1] == "soup"


def test_delivery_day_runs_the_whole_lifecycle(db_session):
    sub = make_subscription(db_session)
    day = make_day(db_session, sub, TODAY, selections=["m1", "m2"])

    KitchenService.transition_day(db_session, sub.subscription_id, TODAY, DayStatus.LOCKED)
    db_session.refresh(day)
    assert day.status == "locked"
    assert day.locked_snapshot["selections"] == ["m1", "m2"]

    KitchenService.transition_day(db_session, sub.subscription_id, TODAY, DayStatus.IN_PREPARATION)
    KitchenService.transition_day(db_session, sub.subscription_id, TODAY, DayStatus.OUT_FOR_DELIVERY)

    delivery = DeliveryRepository(db_session).get_by_day_id(day.day_id)
    assert delivery.status == "out_for_delivery"
    assert delivery.address == sub.delivery_address
    assert delivery.window == "08:00-11:00"

    CourierService.mark_delivered(db_session, delivery.delivery_id)

    db_session.refresh(day)
    db_session.refresh(sub)
    db_session.refresh(delivery)
    assert day.status == "fulfilled"
    assert sub.remaining_meals == 18
    assert delivery.status == "delivered"
    assert delivery.delivered_at is not None
    actions = [a.action for a in ActivityLogRepository(db_session).list_for_entity("subscription_day", day.day_id)]
    assert actions == ["state_change", "state_change", "state_change"]


def test_invalid_transition_conflicts(db_session):
    sub = make_subscription(db_session)
    make_day(db_session, sub, TODAY)

    with pytest.raises(ConflictError) as exc:
        KitchenService.transition_day(db_session, sub.subscription_id, TODAY, DayStatus.OUT_FOR_DELIVERY)

    assert exc.value.code == "INVALID_TRANSITION"


def test_transition_of_missing_day(db_session):
    sub = make_subscription(db_session)

    with pytest.raises(NotFoundError):
        KitchenService.transition_day(db_session, sub.subscription_id, TODAY, DayStatus.LOCKED)


def test_pickup_subscription_cannot_go_out_for_delivery(db_session):
    sub = make_subscription(db_session, delivery_mode="pickup")
    make_day(db_session, sub, TODAY, status="locked")

    with pytest.raises(ServiceValidationError) as exc:
        KitchenService.transition_day(db_session, sub.subscription_id, TODAY, DayStatus.OUT_FOR_DELIVERY)

    assert exc.value.code == "INVALID"
    assert db_session.query(Delivery).count() == 0


def test_ready_for_pickup_notifies_subscriber(db_session):
    sub = make_subscription(db_session, delivery_mode="pickup")
    make_day(db_session, sub, TODAY, status="in_preparation")

    day = KitchenService.transition_day(db_session, sub.subscription_id, TODAY, DayStatus.READY_FOR_PICKUP)

    assert day.status == "ready_for_pickup"
    log = db_session.query(NotificationLog).one()
    assert log.user_id == sub.user_id
    assert log.title == "Order ready for pickup"


def test_fulfill_pickup_does_not_charge_pre_deducted_day(db_session):
    sub = make_subscription(db_session, delivery_mode="pickup", remaining_meals=18)
    make_day(
        db_session,
        sub,
        TODAY,
        status="ready_for_pickup",
        pickup_requested=True,
        credits_deducted=True,
    )

    result = KitchenService.fulfill_pickup(db_session, sub.subscription_id, TODAY)

    assert result["deducted_credits"] == 0
    assert result["day"].status == "fulfilled"
    db_session.refresh(sub)
    assert sub.remaining_meals == 18


def test_fulfill_pickup_of_open_day_conflicts(db_session):
    sub = make_subscription(db_session, delivery_mode="pickup")
    make_day(db_session, sub, TODAY)

    with pytest.raises(ConflictError):
        KitchenService.fulfill_pickup(db_session, sub.subscription_id, TODAY)


def test_assign_meals_creates_day(db_session):
    sub = make_subscription(db_session)

    day = KitchenService.assign_meals(db_session, sub.subscription_id, EDITABLE, ["m1"], ["p1"])

    assert day.status == "open"
    assert day.selections == ["m1"]
    assert day.premium_selections == ["p1"]
    assert day.assigned_by_kitchen is True


def test_assign_meals_respects_daily_cap(db_session):
    sub = make_subscription(db_session, plan=make_plan(db_session, meals_per_day=1))

    with pytest.raises(ServiceValidationError) as exc:
        KitchenService.assign_meals(db_session, sub.subscription_id, EDITABLE, ["m1", "m2"])

    assert exc.value.code == "DAILY_CAP"
    assert DayRepository(db_session).get_for_date(sub.subscription_id, EDITABLE) is None


def test_assign_meals_on_locked_day(db_session):
    sub = make_subscription(db_session)
    day = make_day(db_session, sub, EDITABLE, status="locked", selections=["m1"])

    with pytest.raises(ConflictError) as exc:
        KitchenService.assign_meals(db_session, sub.subscription_id, EDITABLE, ["m9"])

    assert exc.value.code == "LOCKED"
    db_session.refresh(day)
    assert day.selections == ["m1"]


def test_delivered_twice_charges_once(db_session):
    sub = make_subscription(db_session)
    day = make_day(db_session, sub, TODAY, status="out_for_delivery")
    delivery = _delivery(db_session, sub, day)

    CourierService.mark_delivered(db_session, delivery.delivery_id)
    again = CourierService.mark_delivered(db_session, delivery.delivery_id)

    assert again.status == "delivered"
    db_session.refresh(sub)
    assert sub.remaining_meals == 18


def test_cancel_is_charged_like_a_skip(db_session):
    sub = make_subscription(db_session)
    original_end = sub.validity_end_date
    day = make_day(db_session, sub, TODAY, status="out_for_delivery")
    delivery = _delivery(db_session, sub, day)

    CourierService.mark_cancelled(db_session, delivery.delivery_id)

    db_session.refresh(delivery)
    db_session.refresh(day)
    db_session.refresh(sub)
    assert delivery.status == "cancelled"
    assert delivery.cancelled_at is not None
    assert day.status == "skipped"
    assert sub.remaining_meals == 18
    assert sub.skipped_count == 1
    assert sub.validity_end_date > original_end

    # Cancelling again changes nothing
    CourierService.mark_cancelled(db_session, delivery.delivery_id)
    db_session.refresh(sub)
    assert sub.remaining_meals == 18


def test_cannot_cancel_delivered_order(db_session):
    sub = make_subscription(db_session)
    day = make_day(db_session, sub, TODAY, status="fulfilled")
    delivery = _delivery(db_session, sub, day, status="delivered")

    with pytest.raises(ServiceValidationError) as exc:
        CourierService.mark_cancelled(db_session, delivery.delivery_id)

    assert exc.value.code == "ALREADY_DELIVERED"


def test_arriving_soon_moves_scheduled_delivery(db_session):
    sub = make_subscription(db_session)
    day = make_day(db_session, sub, TODAY, status="in_preparation")
    delivery = _delivery(db_session, sub, day, status="scheduled")

    CourierService.mark_arriving_soon(db_session, delivery.delivery_id)

    db_session.refresh(delivery)
    assert delivery.status == "out_for_delivery"
    assert db_session.query(NotificationLog).count() == 1


def test_today_deliveries_only(db_session):
    sub = make_subscription(db_session)
    today = _delivery(db_session, sub, make_day(db_session, sub, TODAY, status="out_for_delivery"))
    _delivery(db_session, sub, make_day(db_session, sub, EDITABLE, status="locked"), status="scheduled")

    deliveries = CourierService.list_today_deliveries(db_session)

    assert [d.delivery_id for d in deliveries] == [today.delivery_id]


def test_unknown_delivery(db_session):
    with pytest.raises(NotFoundError):
        CourierService.mark_delivered(db_session, uuid.uuid4())
