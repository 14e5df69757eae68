"""
HTTP surface: routing, client status vocabulary and the error envelope.
"""

import uuid

from app.config import settings
from test_fixtures import EDITABLE, TODAY, make_day, make_plan, make_subscription


def test_health_check(client):
    response = client.get("/health-check")

    assert response.status_code == 200
    body = response.json()
    assert body["service"] == "MealPass"
    assert body["database"] is True
    assert body["catalog"] is False


def test_list_plans_hides_inactive(client, db_session):
    make_plan(db_session, name="Monthly")
    make_plan(db_session, name="Retired", is_active=False)

    response = client.get("/api/plans")

    assert response.status_code == 200
    assert [p["name"] for p in response.json()] == ["Monthly"]


def test_days_use_client_status(client, db_session):
    sub = make_subscription(db_session)
    make_day(db_session, sub, TODAY, status="locked")
    make_day(db_session, sub, EDITABLE)

    response = client.get(f"/api/subscriptions/{sub.subscription_id}/days")

    assert response.status_code == 200
    assert [d["status"] for d in response.json()] == ["preparing", "open"]


def test_skip_endpoint(client, db_session):
    sub = make_subscription(db_session)

    response = client.post(f"/api/subscriptions/{sub.subscription_id}/days/{EDITABLE.isoformat()}/skip")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "skipped"
    assert body["day"]["status"] == "skipped"
    assert body["compensated_date"] is not None


def test_skip_locked_day_returns_conflict_envelope(client, db_session):
    sub = make_subscription(db_session)
    make_day(db_session, sub, EDITABLE, status="locked")

    response = client.post(f"/api/subscriptions/{sub.subscription_id}/days/{EDITABLE.isoformat()}/skip")

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "LOCKED"


def test_unknown_subscription_is_404(client):
    response = client.get(f"/api/subscriptions/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_malformed_date_is_400(client, db_session):
    sub = make_subscription(db_session)

    response = client.get(f"/api/subscriptions/{sub.subscription_id}/days/10-03-2026")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_DATE"


def test_request_validation_envelope(client, db_session):
    sub = make_subscription(db_session)

    response = client.post(f"/api/subscriptions/{sub.subscription_id}/skip-range", json={"days": 3})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_skip_range_endpoint(client, db_session):
    sub = make_subscription(db_session)

    response = client.post(
        f"/api/subscriptions/{sub.subscription_id}/skip-range",
        json={"start_date": EDITABLE.isoformat(), "days": 2},
    )

    assert response.status_code == 200
    assert len(response.json()["skipped_dates"]) == 2


def test_webhook_requires_token_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "moyasar_webhook_secret", "whsec_123")

    response = client.post(
        "/api/webhooks/moyasar",
        json={"type": "payment_paid", "data": {"id": "pay_1", "status": "paid"}},
    )

    assert response.status_code == 401


def test_webhook_records_payment(client):
    response = client.post(
        "/api/webhooks/moyasar",
        json={"type": "payment_paid", "data": {"id": "pay_1", "status": "paid", "metadata": {}}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["applied"] is True
    assert body["unapplied_reason"] == "invalid_metadata"


def test_settings_update(client):
    bad = client.put("/api/settings/cutoff_time", json={"value": "25:00"})
    good = client.put("/api/settings/cutoff_time", json={"value": "21:30"})

    assert bad.status_code == 400
    assert bad.json()["error"]["code"] == "INVALID_CUTOFF"
    assert good.status_code == 200
    assert client.get("/api/settings").json()["cutoff_time"] == "21:30"


def test_kitchen_lock_route(client, db_session):
    sub = make_subscription(db_session)
    make_day(db_session, sub, TODAY, selections=["m1"])

    response = client.post(f"/api/kitchen/subscriptions/{sub.subscription_id}/days/{TODAY.isoformat()}/lock")

    assert response.status_code == 200
    assert response.json()["status"] == "locked"

    again = client.post(f"/api/kitchen/subscriptions/{sub.subscription_id}/days/{TODAY.isoformat()}/lock")
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "INVALID_TRANSITION"


def test_list_subscriptions_of_user(client, db_session):
    sub = make_subscription(db_session)
    make_subscription(db_session)

    response = client.get("/api/subscriptions", params={"user_id": str(sub.user_id)})

    assert response.status_code == 200
    body = response.json()
    assert [s["subscription_id"] for s in body] == [str(sub.subscription_id)]
    assert body[0]["remaining_meals"] == 20


def test_request_id_is_echoed(client):
    response = client.get("/api/plans", headers={"X-Request-ID": "courier-42"})

    assert response.headers["X-Request-ID"] == "courier-42"
    assert "X-Process-Time" in response.headers


def test_unknown_route_uses_envelope(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "HTTP_404"
