"""
Integration tests for POST /billing/portal.
"""
import pytest

from app.core import config
from app.services.billing_service import build_flow_data, validate_return_url
from conftest import add_profile, auth_headers, subscription_payload


@pytest.fixture
def customer(db):
    add_profile(db, "u1", customer_id="cus_123")
    return "cus_123"


def test_portal_without_customer_returns_404(client, db, fake_stripe):
    add_profile(db, "u1")

    response = client.post("/billing/portal", json={}, headers=auth_headers("u1"))

    assert response.status_code == 404
    assert "complete subscription setup first" in response.json()["detail"]
    assert fake_stripe.calls == []


def test_portal_without_body_opens_generic_session(client, customer, fake_stripe):
    response = client.post("/billing/portal", headers=auth_headers("u1"))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["url"] == "https://billing.stripe.com/p/session/bps_1"
    assert data["created"] == 1700000000
    assert data["expires_at"] == 1700003600
    assert data["flow_type"] is None
    assert data["return_url"] == f"{config.FRONTEND_URL}/settings/billing"

    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert portal_call["customer"] == "cus_123"
    assert "flow_data" not in portal_call


def test_update_flow_without_active_subscription_omits_flow_data(client, customer, fake_stripe):
    """Free users still get a portal session when asking for a subscription flow."""
    response = client.post(
        "/billing/portal",
        json={"flow_type": "subscription_update"},
        headers=auth_headers("u1"),
    )

    assert response.status_code == 200
    assert response.json()["data"]["url"]
    assert response.json()["data"]["flow_type"] == "subscription_update"
    [list_call] = fake_stripe.called("Subscription.list")
    assert list_call == {"customer": "cus_123", "limit": 10}
    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert "flow_data" not in portal_call


def test_update_flow_targets_active_subscription(client, customer, fake_stripe):
    fake_stripe.active_subscriptions = [subscription_payload()]

    client.post("/billing/portal", json={"flow_type": "subscription_update"}, headers=auth_headers("u1"))

    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert portal_call["flow_data"] == {
        "type": "subscription_update",
        "subscription_update": {"subscription": "sub_456"},
    }


def test_cancel_flow_targets_active_subscription(client, customer, fake_stripe):
    fake_stripe.active_subscriptions = [subscription_payload()]

    client.post("/billing/portal", json={"flow_type": "subscription_cancel"}, headers=auth_headers("u1"))

    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert portal_call["flow_data"] == {
        "type": "subscription_cancel",
        "subscription_cancel": {"subscription": "sub_456"},
    }


def test_payment_method_flow_skips_subscription_lookup(client, customer, fake_stripe):
    client.post("/billing/portal", json={"flow_type": "payment_method_update"}, headers=auth_headers("u1"))

    assert fake_stripe.called("Subscription.list") == []
    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert portal_call["flow_data"] == {"type": "payment_method_update"}


def test_update_confirm_flow_targets_price(client, customer, fake_stripe):
    fake_stripe.active_subscriptions = [subscription_payload()]

    client.post(
        "/billing/portal",
        json={"flow_type": "subscription_update_confirm", "price_id": "price_pro_year"},
        headers=auth_headers("u1"),
    )

    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert portal_call["flow_data"] == {
        "type": "subscription_update_confirm",
        "subscription_update_confirm": {
            "subscription": "sub_456",
            "items": [{"id": "si_1", "price": "price_pro_year", "quantity": 1}],
        },
    }


def test_unsupported_flow_returns_400(client, customer, fake_stripe):
    response = client.post("/billing/portal", json={"flow_type": "delete_everything"}, headers=auth_headers("u1"))

    assert response.status_code == 400
    assert fake_stripe.calls == []


def test_configuration_id_is_forwarded(client, customer, fake_stripe):
    client.post("/billing/portal", json={"configuration_id": "bpc_123"}, headers=auth_headers("u1"))

    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert portal_call["configuration"] == "bpc_123"


def test_foreign_return_url_is_replaced(client, customer, fake_stripe):
    response = client.post(
        "/billing/portal",
        json={"return_url": "https://evil.example.com/steal"},
        headers=auth_headers("u1"),
    )

    assert response.json()["data"]["return_url"] == f"{config.FRONTEND_URL}/settings/billing"


def test_portal_without_secret_key_returns_500(client, customer, fake_stripe, monkeypatch):
    monkeypatch.setattr(config, "STRIPE_SECRET_KEY", None)

    response = client.post("/billing/portal", json={}, headers=auth_headers("u1"))

    assert response.status_code == 500


def test_validate_return_url_keeps_frontend_urls():
    url = f"{config.FRONTEND_URL}/settings/billing?tab=invoices"

    assert validate_return_url(url) == url


def test_update_confirm_without_price_degrades_to_update():
    flow_data = build_flow_data("subscription_update_confirm", subscription_payload())

    assert flow_data == {
        "type": "subscription_update",
        "subscription_update": {"subscription": "sub_456"},
    }


def test_subscription_flow_without_subscription_is_none():
    assert build_flow_data("subscription_cancel", None) is None


def test_cancel_flow_targets_trialing_subscription(client, customer, fake_stripe):
    """Trialing subscriptions can be managed from the portal too."""
    fake_stripe.active_subscriptions = [subscription_payload(status="trialing")]

    client.post("/billing/portal", json={"flow_type": "subscription_cancel"}, headers=auth_headers("u1"))

    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert portal_call["flow_data"]["subscription_cancel"] == {"subscription": "sub_456"}


def test_update_flow_skips_past_due_subscription(client, customer, fake_stripe):
    fake_stripe.active_subscriptions = [
        subscription_payload(sub_id="sub_past_due", status="past_due"),
        subscription_payload(sub_id="sub_trial", status="trialing"),
    ]

    client.post("/billing/portal", json={"flow_type": "subscription_update"}, headers=auth_headers("u1"))

    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert portal_call["flow_data"]["subscription_update"] == {"subscription": "sub_trial"}


def test_update_flow_with_only_past_due_subscription_omits_flow_data(client, customer, fake_stripe):
    fake_stripe.active_subscriptions = [subscription_payload(status="past_due")]

    response = client.post("/billing/portal", json={"flow_type": "subscription_update"}, headers=auth_headers("u1"))

    assert response.status_code == 200
    [portal_call] = fake_stripe.called("billing_portal.Session.create")
    assert "flow_data" not in portal_call
