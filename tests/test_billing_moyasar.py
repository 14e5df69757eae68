"""
Checkout pricing, invoice creation through the Moyasar client and the push
gateway adapter, with httpx mock transports standing in for the providers.
"""

import json
import uuid
from decimal import Decimal

import httpx
import pytest

from adapters import catalog_adapter, push_adapter
from adapters.moyasar_client import MoyasarClient
from app.config import settings
from app.exceptions import ConflictError, NotFoundError, PaymentProviderError
from domain.models import Payment, Subscription
from repositories import DayRepository
from services import BillingService, PaymentService
from services import billing_service
from services.billing_service import to_minor_units
from test_fixtures import EDITABLE, RIYADH_ADDRESS, TODAY, make_day, make_plan, make_subscription

ADDONS = {
    "juice": {"_id": "juice", "name": "Daily Juice", "price": 10, "type": "subscription"},
    "soup": {"_id": "soup", "name": "Soup", "price": 15, "type": "one_time"},
}


@pytest.fixture
def addons(monkeypatch):
    monkeypatch.setattr(catalog_adapter, "get_addon", lambda addon_id: ADDONS.get(addon_id))
    return ADDONS


@pytest.fixture
def moyasar(monkeypatch):
    """Collects invoice requests; answers with a fixed invoice"""
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(
            201,
            json={"id": "inv_1", "url": "https://checkout.moyasar.test/inv_1", "currency": "SAR"},
        )

    client = MoyasarClient(api_key="sk_test", transport=httpx.MockTransport(handler))
    monkeypatch.setattr(billing_service, "get_invoice_client", lambda: client)
    return requests


@pytest.mark.parametrize(
    "amount,expected",
    [(Decimal("12.345"), 1235), (Decimal("300"), 30000), ("0.1", 10), (20, 2000)],
)
def test_to_minor_units(amount, expected):
    assert to_minor_units(amount) == expected


def test_quote_prices_recurring_addons_per_day(db_session, addons):
    plan = make_plan(db_session, days_count=5, price=Decimal("300.00"))

    quote = BillingService.quote(db_session, plan, 2, ["juice", "soup", "unknown"])

    assert quote["total"] == Decimal("405")
    assert quote["breakdown"]["premium"] == Decimal("40")
    assert quote["breakdown"]["addons"] == Decimal("65")


def test_preview_of_unknown_plan(db_session):
    with pytest.raises(NotFoundError):
        BillingService.preview_checkout(db_session, uuid.uuid4())


def test_checkout_creates_pending_subscription_then_webhook_activates(db_session, addons, moyasar):
    plan = make_plan(db_session, days_count=5)
    user_id = uuid.uuid4()

    result = BillingService.checkout_subscription(
        db_session,
        user_id,
        plan.plan_id,
        "delivery",
        premium_count=2,
        addon_ids=["juice", "soup"],
        delivery_address=dict(RIYADH_ADDRESS),
        delivery_window="08:00-11:00",
    )

    assert result["payment_url"] == "https://checkout.moyasar.test/inv_1"
    request = moyasar[0]
    assert request.url.path == "/v1/invoices"
    assert request.headers["authorization"].startswith("Basic ")
    body = json.loads(request.content)
    assert body["amount"] == 40500
    assert body["metadata"]["type"] == "subscription_activation"
    assert body["metadata"]["subscription_id"] == str(result["subscription_id"])

    sub = db_session.get(Subscription, result["subscription_id"])
    assert sub.status == "pending_payment"
    assert sub.premium_remaining == 2
    assert sub.total_meals == 10
    payment = db_session.query(Payment).one()
    assert payment.status == "initiated"
    assert payment.provider_invoice_id == "inv_1"

    webhook = {"type": "payment_paid", "data": {"id": "pay_9", "status": "paid", "invoice_id": "inv_1"}}
    outcome = PaymentService.handle_payment_event(db_session, webhook)

    assert outcome["applied"] is True
    assert "unapplied_reason" not in outcome
    db_session.refresh(sub)
    assert sub.status == "active"
    days = DayRepository(db_session).list_for_subscription(sub.subscription_id)
    assert len(days) == 5
    assert days[0].date == TODAY


def test_checkout_provider_rejection_persists_nothing(db_session, monkeypatch):
    plan = make_plan(db_session)

    def handler(request):
        return httpx.Response(400, json={"message": "amount is invalid"})

    client = MoyasarClient(api_key="sk_test", transport=httpx.MockTransport(handler))
    monkeypatch.setattr(billing_service, "get_invoice_client", lambda: client)

    with pytest.raises(PaymentProviderError) as exc:
        BillingService.checkout_subscription(
            db_session, uuid.uuid4(), plan.plan_id, "pickup"
        )

    assert exc.value.message == "amount is invalid"
    assert db_session.query(Payment).count() == 0
    assert db_session.query(Subscription).count() == 0


def test_missing_provider_key(db_session, monkeypatch):
    plan = make_plan(db_session)
    monkeypatch.setattr(billing_service, "get_invoice_client", lambda: MoyasarClient(api_key=""))

    with pytest.raises(PaymentProviderError) as exc:
        BillingService.checkout_subscription(db_session, uuid.uuid4(), plan.plan_id, "pickup")

    assert exc.value.code == "PROVIDER_NOT_CONFIGURED"


def test_premium_topup_invoice(db_session, moyasar):
    sub = make_subscription(db_session)

    result = BillingService.create_premium_topup(db_session, sub.subscription_id, 3)

    assert json.loads(moyasar[0].content)["amount"] == 6000
    payment = db_session.get(Payment, result["payment_id"])
    assert payment.type == "premium_topup"
    assert payment.meta["premium_count"] == 3


def test_addon_purchase_opens_the_day(db_session, addons, moyasar):
    sub = make_subscription(db_session)

    BillingService.create_addon_purchase(db_session, sub.subscription_id, "soup", EDITABLE.isoformat())

    assert json.loads(moyasar[0].content)["amount"] == 1500
    day = DayRepository(db_session).get_for_date(sub.subscription_id, EDITABLE)
    assert day.status == "open"


def test_addon_purchase_on_locked_day(db_session, addons, moyasar):
    sub = make_subscription(db_session)
    make_day(db_session, sub, EDITABLE, status="locked")

    with pytest.raises(ConflictError):
        BillingService.create_addon_purchase(db_session, sub.subscription_id, "soup", EDITABLE)

    assert moyasar == []


@pytest.mark.parametrize("addon_id", ["juice", "nope"])
def test_addon_purchase_needs_one_time_addon(db_session, addons, moyasar, addon_id):
    sub = make_subscription(db_session)

    with pytest.raises(NotFoundError):
        BillingService.create_addon_purchase(db_session, sub.subscription_id, addon_id, EDITABLE)


def test_push_gateway_counts(monkeypatch):
    sent = []

    def handler(request):
        sent.append(json.loads(request.content))
        return httpx.Response(200, json={"success_count": 2, "failure_count": 1})

    monkeypatch.setattr(settings, "push_gateway_url", "https://push.test/send")
    push_adapter.configure(httpx.MockTransport(handler))

    assert push_adapter.send("u-1", "Hello", "Body", {"k": "v"}) == (2, 1)
    assert sent[0]["user_id"] == "u-1"


def test_push_gateway_failure_is_one_failure(monkeypatch):
    monkeypatch.setattr(settings, "push_gateway_url", "https://push.test/send")
    push_adapter.configure(httpx.MockTransport(lambda request: httpx.Response(500)))

    assert push_adapter.send("u-1", "Hello", "Body") == (0, 1)


def test_push_gateway_not_configured():
    assert push_adapter.send("u-1", "Hello", "Body") == (0, 0)
