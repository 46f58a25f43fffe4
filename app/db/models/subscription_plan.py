from sqlalchemy import Column, String, Float, Boolean
from app.db.base import Base


class SubscriptionPlan(Base):
    """
    Plan catalog entry, seeded from Stripe products by scripts/sync_plans.py.

    Read-only to the billing engine.
    """
    __tablename__ = "subscription_plans"

    plan_id = Column(String, primary_key=True)  # free | pro | ...
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)

    monthly_price = Column(Float, nullable=False, default=0)
    yearly_price = Column(Float, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")

    stripe_monthly_price_id = Column(String, nullable=True, index=True)
    stripe_yearly_price_id = Column(String, nullable=True, index=True)
    stripe_product_id = Column(String, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
