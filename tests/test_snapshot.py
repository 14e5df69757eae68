"""
Snapshot tests: effective delivery resolution and write-once locked snapshots.
"""

from decimal import Decimal

from sqlalchemy import update

from domain.models import SubscriptionDay
from services import SnapshotService
from services.snapshot_service import effective_delivery
from test_fixtures import EDITABLE, make_day, make_subscription


def test_effective_delivery_prefers_non_empty_override(db_session):
    sub = make_subscription(db_session)
    day = make_day(
        db_session,
        sub,
        EDITABLE,
        delivery_address_override={"line1": "Tahlia St 4", "city": "Jeddah"},
        delivery_window_override="",
    )

    address, window = effective_delivery(sub, day)

    assert address == {"line1": "Tahlia St 4", "city": "Jeddah"}
    assert window == "08:00-11:00"
    assert effective_delivery(sub, None) == (sub.delivery_address, sub.delivery_window)


def test_build_snapshot_copies_by_value(db_session):
    sub = make_subscription(
        db_session,
        addon_subscriptions=[{"addon_id": "juice", "name": "Juice", "price": "5.00", "type": "subscription"}],
    )
    day = make_day(
        db_session,
        sub,
        EDITABLE,
        selections=["m1", "m2"],
        premium_selections=[],
        addons_one_time=["soup"],
        custom_salads=[{"base": "greens", "toppings": ["feta"]}],
        delivery_window_override="12:00-15:00",
    )

    snapshot = SnapshotService.build_snapshot(sub, day)

    assert snapshot["selections"] == ["m1", "m2"]
    assert snapshot["addons_one_time"] == ["soup"]
    assert snapshot["custom_salads"] == [{"base": "greens", "toppings": ["feta"]}]
    assert snapshot["delivery_window"] == "12:00-15:00"
    assert snapshot["meals_per_day"] == 2
    assert snapshot["pricing"]["premium_price"] == str(Decimal("20.00"))
    assert snapshot["pricing"]["addons"][0]["addon_id"] == "juice"

    snapshot["selections"].append("m3")
    assert day.selections == ["m1", "m2"]


def test_locked_snapshot_is_written_once(db_session):
    sub = make_subscription(db_session)
    day = make_day(db_session, sub, EDITABLE, selections=["m1"])

    first = SnapshotService.ensure_locked_snapshot(db_session, sub, day)
    db_session.commit()
    assert first["selections"] == ["m1"]
    assert day.locked_at is not None

    day.selections = ["m9"]
    db_session.commit()
    second = SnapshotService.ensure_locked_snapshot(db_session, sub, day)

    assert second["selections"] == ["m1"]


def test_concurrent_snapshot_keeps_the_winner(db_session):
    """A locker holding a stale copy adopts the snapshot already stored"""
    sub = make_subscription(db_session)
    day = make_day(db_session, sub, EDITABLE, selections=["m1"])
    assert day.locked_snapshot is None

    db_session.execute(
        update(SubscriptionDay)
        .where(SubscriptionDay.day_id == day.day_id)
        .values(locked_snapshot={"selections": ["winner"]})
        .execution_options(synchronize_session=False)
    )
    db_session.commit()

    stored = SnapshotService.ensure_locked_snapshot(db_session, sub, day)

    assert stored == {"selections": ["winner"]}
