"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from app.db.models.user_profile import UserProfile
from app.db.models.subscription_plan import SubscriptionPlan
from app.db.models.user_subscription import UserSubscription

# Explicitly export all models for clarity
__all__ = [
    "UserProfile",
    "SubscriptionPlan",
    "UserSubscription",
]
