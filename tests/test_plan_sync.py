"""
Tests for the plan catalog sync and the free-user provisioning script.
"""
from app.db.models.subscription_plan import SubscriptionPlan
from app.db.repositories import PlanRepository, ProfileRepository, SubscriptionRepository
from app.services.plan_service import sync_plans_from_stripe, yearly_savings
from scripts.provision_free_user import provision_free_user


def test_sync_creates_plans_from_products(db, fake_stripe):
    fake_stripe.products = [{
        "id": "prod_pro",
        "name": "Pro",
        "description": "For power users",
        "active": True,
        "metadata": {"app_plan_id": "pro"},
    }]
    fake_stripe.prices = [
        {"id": "price_m", "product": "prod_pro", "unit_amount": 1900, "currency": "usd", "recurring": {"interval": "month"}},
        {"id": "price_y", "product": "prod_pro", "unit_amount": 19000, "currency": "usd", "recurring": {"interval": "year"}},
        {"id": "price_other", "product": "prod_other", "unit_amount": 500, "recurring": {"interval": "month"}},
    ]

    counts = sync_plans_from_stripe(db)

    assert counts == {"created": 1, "updated": 0}
    plan = PlanRepository(db).get("pro")
    assert plan.name == "Pro"
    assert plan.monthly_price == 19.0
    assert plan.yearly_price == 190.0
    assert plan.currency == "USD"
    assert plan.stripe_monthly_price_id == "price_m"
    assert plan.stripe_yearly_price_id == "price_y"
    assert plan.stripe_product_id == "prod_pro"


def test_sync_updates_existing_plan(db, plans, fake_stripe):
    fake_stripe.products = [{"id": "prod_pro", "name": "Pro Plus", "metadata": {"app_plan_id": "pro"}}]
    fake_stripe.prices = [
        {"id": "price_pro_month_v2", "product": "prod_pro", "unit_amount": 2400, "recurring": {"interval": "month"}},
    ]

    counts = sync_plans_from_stripe(db)

    assert counts == {"created": 0, "updated": 1}
    plan = PlanRepository(db).get("pro")
    assert plan.name == "Pro Plus"
    assert plan.stripe_monthly_price_id == "price_pro_month_v2"
    assert plan.stripe_yearly_price_id is None


def test_sync_without_products_changes_nothing(db, fake_stripe):
    assert sync_plans_from_stripe(db) == {"created": 0, "updated": 0}
    assert db.query(SubscriptionPlan).count() == 0


def test_yearly_savings_never_negative():
    assert yearly_savings(19.0, 190.0) == 38.0
    assert yearly_savings(10.0, 200.0) == 0


def test_provision_creates_profile_and_free_subscription(db):
    subscription = provision_free_user(db, "u1", email="u1@example.com")

    assert subscription.plan_id == "free"
    assert subscription.status == "active"
    assert subscription.current_period_end is None
    assert ProfileRepository(db).get("u1").email == "u1@example.com"
    assert PlanRepository(db).get("free") is not None


def test_provision_keeps_paid_subscription_unless_forced(db, plans):
    provision_free_user(db, "u1")
    record = SubscriptionRepository(db).get("u1")
    record.plan_id = "pro"
    record.stripe_subscription_id = "sub_456"
    db.commit()

    assert provision_free_user(db, "u1").plan_id == "pro"

    reset = provision_free_user(db, "u1", force=True)
    assert reset.plan_id == "free"
    assert reset.stripe_subscription_id is None
