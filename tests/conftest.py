"""
Shared fixtures for billing tests.

Environment is set before any app import so config picks up test secrets.
Stripe is never called: the fake_stripe fixture replaces the stripe library
calls with recorders returning plain dicts.
"""
import hashlib
import hmac
import json
import os
import tempfile
import time
from datetime import datetime, timedelta, timezone

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_123")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3000")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="billing-logs-"))

import pytest
import stripe
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core import config
from app.core.auth_dependency import get_db
from app.db.base import Base
from app.db.models.subscription_plan import SubscriptionPlan
from app.db.models.user_profile import UserProfile
from app.db.models.user_subscription import UserSubscription


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db():
    """Provide a database session for tests."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def plans(db):
    """Seed the catalog with the free plan and a pro plan priced monthly and yearly."""
    free = SubscriptionPlan(
        plan_id="free",
        name="Free",
        description="Free plan",
        monthly_price=0,
        yearly_price=0,
        currency="USD",
        is_active=True,
    )
    pro = SubscriptionPlan(
        plan_id="pro",
        name="Pro",
        description="Pro plan",
        monthly_price=19.0,
        yearly_price=190.0,
        currency="USD",
        stripe_monthly_price_id="price_pro_month",
        stripe_yearly_price_id="price_pro_year",
        stripe_product_id="prod_pro",
        is_active=True,
    )
    db.add_all([free, pro])
    db.commit()
    return {"free": free, "pro": pro}


def add_profile(db, user_id, customer_id=None, email=None):
    profile = UserProfile(user_id=user_id, email=email, stripe_customer_id=customer_id)
    db.add(profile)
    db.commit()
    return profile


def add_free_subscription(db, user_id, customer_id=None):
    subscription = UserSubscription(
        user_id=user_id,
        plan_id="free",
        status="active",
        stripe_customer_id=customer_id,
    )
    db.add(subscription)
    db.commit()
    return subscription


def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    """Sign a token the way the identity provider does."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def auth_headers(user_id="u1", email="u1@example.com"):
    token = create_access_token({"sub": user_id, "email": email})
    return {"Authorization": f"Bearer {token}"}


def subscription_payload(
    sub_id="sub_456",
    customer="cus_123",
    price_id="price_pro_month",
    interval="month",
    status="active",
    cancel_at_period_end=False,
    period_start=1700000000,
    period_end=1702592000,
):
    """A Stripe subscription object as it appears in webhook payloads."""
    return {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": cancel_at_period_end,
        "current_period_start": period_start,
        "current_period_end": period_end,
        "trial_start": None,
        "trial_end": None,
        "items": {
            "object": "list",
            "data": [{
                "id": "si_1",
                "price": {
                    "id": price_id,
                    "product": "prod_pro",
                    "recurring": {"interval": interval, "interval_count": 1},
                },
            }],
        },
    }


def event_payload(event_type, obj, event_id="evt_1"):
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "data": {"object": obj},
    }


def sign_payload(payload: str, secret: str = None, timestamp: int = None) -> str:
    """Build a Stripe-Signature header for a raw payload."""
    secret = secret or config.STRIPE_WEBHOOK_SECRET
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def post_webhook(client, event, secret=None):
    payload = json.dumps(event)
    return client.post(
        "/billing/webhook",
        content=payload,
        headers={
            "Content-Type": "application/json",
            "Stripe-Signature": sign_payload(payload, secret=secret),
        },
    )


class FakeStripe:
    """Records Stripe calls and returns canned responses."""

    def __init__(self):
        self.calls = []
        self.customer_id = "cus_new"
        self.active_subscriptions = []
        self.modified_subscription = None
        self.customer = {"id": "cus_123", "invoice_settings": {"default_payment_method": None}}
        self.payment_methods = []
        self.invoices = {"data": [], "has_more": False}
        self.products = []
        self.prices = []
        self.error = None

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if self.error is not None:
            raise self.error

    def called(self, name):
        return [kwargs for call, _, kwargs in self.calls if call == name]

    def customer_create(self, **kwargs):
        self._record("Customer.create", **kwargs)
        return {"id": self.customer_id, "object": "customer"}

    def checkout_session_create(self, **kwargs):
        self._record("checkout.Session.create", **kwargs)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.com/c/pay/cs_test_1"}

    def portal_session_create(self, **kwargs):
        self._record("billing_portal.Session.create", **kwargs)
        return {
            "id": "bps_1",
            "url": "https://billing.stripe.com/p/session/bps_1",
            "created": 1700000000,
        }

    def subscription_list(self, **kwargs):
        self._record("Subscription.list", **kwargs)
        return {"object": "list", "data": self.active_subscriptions}

    def subscription_modify(self, subscription_id, **kwargs):
        self._record("Subscription.modify", subscription_id, **kwargs)
        return self.modified_subscription

    def customer_retrieve(self, customer_id, **kwargs):
        self._record("Customer.retrieve", customer_id, **kwargs)
        return self.customer

    def payment_method_list(self, **kwargs):
        self._record("PaymentMethod.list", **kwargs)
        return {"object": "list", "data": self.payment_methods}

    def invoice_list(self, **kwargs):
        self._record("Invoice.list", **kwargs)
        return self.invoices

    def product_list(self, **kwargs):
        self._record("Product.list", **kwargs)
        return {"object": "list", "data": self.products}

    def price_list(self, **kwargs):
        self._record("Price.list", **kwargs)
        return {"object": "list", "data": self.prices}


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(stripe.Customer, "create", fake.customer_create)
    monkeypatch.setattr(stripe.checkout.Session, "create", fake.checkout_session_create)
    monkeypatch.setattr(stripe.billing_portal.Session, "create", fake.portal_session_create)
    monkeypatch.setattr(stripe.Subscription, "list", fake.subscription_list)
    monkeypatch.setattr(stripe.Subscription, "modify", fake.subscription_modify)
    monkeypatch.setattr(stripe.Customer, "retrieve", fake.customer_retrieve)
    monkeypatch.setattr(stripe.PaymentMethod, "list", fake.payment_method_list)
    monkeypatch.setattr(stripe.Invoice, "list", fake.invoice_list)
    monkeypatch.setattr(stripe.Product, "list", fake.product_list)
    monkeypatch.setattr(stripe.Price, "list", fake.price_list)
    return fake
