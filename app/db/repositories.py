"""
Repositories over the billing tables.

Resolvers and services receive these instead of querying models ad hoc, so
the catalog and profile lookups can be backed by any session (tests use an
in-memory SQLite database).
"""
from typing import List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.db.models.user_profile import UserProfile
from app.db.models.subscription_plan import SubscriptionPlan
from app.db.models.user_subscription import UserSubscription


class ProfileRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[UserProfile]:
        return self.db.query(UserProfile).filter(UserProfile.user_id == user_id).first()

    def find_by_customer_id(self, customer_id: str) -> Optional[UserProfile]:
        return self.db.query(UserProfile).filter(
            UserProfile.stripe_customer_id == customer_id
        ).first()

    def get_or_create(self, user_id: str, email: Optional[str] = None) -> UserProfile:
        """Return the profile, adding a new one to the session if missing (not committed)."""
        profile = self.get(user_id)
        if profile is None:
            profile = UserProfile(user_id=user_id, email=email)
            self.db.add(profile)
        elif email and not profile.email:
            profile.email = email
        return profile


class PlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, plan_id: str) -> Optional[SubscriptionPlan]:
        return self.db.query(SubscriptionPlan).filter(SubscriptionPlan.plan_id == plan_id).first()

    def find_by_price_id(self, price_id: str) -> Optional[SubscriptionPlan]:
        return self.db.query(SubscriptionPlan).filter(
            or_(
                SubscriptionPlan.stripe_monthly_price_id == price_id,
                SubscriptionPlan.stripe_yearly_price_id == price_id,
            )
        ).first()

    def list_active(self) -> List[SubscriptionPlan]:
        return (
            self.db.query(SubscriptionPlan)
            .filter(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.monthly_price)
            .all()
        )


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[UserSubscription]:
        return self.db.query(UserSubscription).filter(UserSubscription.user_id == user_id).first()
