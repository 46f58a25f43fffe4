from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import Base

SUBSCRIPTION_STATUSES = (
    "active",
    "past_due",
    "canceled",
    "trialing",
    "incomplete",
    "incomplete_expired",
    "unpaid",
)

BILLING_INTERVALS = ("month", "year")


class UserSubscription(Base):
    """
    The single subscription record of a user.

    Keyed by user_id only: a user has at most one record, which is replaced
    from Stripe's snapshot on every subscription event and reverted to the
    free plan (never deleted) on cancellation.
    """
    __tablename__ = "user_subscriptions"

    user_id = Column(String, primary_key=True)
    plan_id = Column(String, ForeignKey("subscription_plans.plan_id"), nullable=False, default="free")

    stripe_subscription_id = Column(String, nullable=True, index=True)  # None on the free plan
    stripe_customer_id = Column(String, nullable=True)

    status = Column(String, nullable=False, default="active")
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)  # None = never expires
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    billing_interval = Column(String, nullable=True)  # month | year, None on the free plan

    trial_start = Column(DateTime(timezone=True), nullable=True)
    trial_end = Column(DateTime(timezone=True), nullable=True)

    plan = relationship("SubscriptionPlan", lazy="joined")
