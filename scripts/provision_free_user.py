"""
Provision a user on the free plan.

Creates the user's profile and free subscription record, the way signup does
in the identity provider. Existing records are left on their current plan
unless --force is given.

Run: python -m scripts.provision_free_user <user_id> [--email EMAIL] [--force] [--create-tables]
"""
import argparse
import logging
import sys
from datetime import datetime, timezone

from app.db.init_db import init_db
from app.db.session import SessionLocal
from app.db.models.subscription_plan import SubscriptionPlan
from app.db.models.user_subscription import UserSubscription
from app.db.repositories import PlanRepository, ProfileRepository, SubscriptionRepository
from app.services.subscription_sync import FREE_PLAN_ID, free_plan_fields

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def ensure_free_plan(db) -> SubscriptionPlan:
    """Return the free catalog entry, creating it if the catalog has none."""
    plan = PlanRepository(db).get(FREE_PLAN_ID)
    if plan is None:
        logger.info("Free plan missing from catalog, creating it")
        plan = SubscriptionPlan(
            plan_id=FREE_PLAN_ID,
            name="Free",
            description="Free plan",
            monthly_price=0,
            yearly_price=0,
            currency="USD",
            is_active=True,
        )
        db.add(plan)
    return plan


def provision_free_user(db, user_id: str, email: str = None, force: bool = False) -> UserSubscription:
    """
    Create the profile and free subscription record for a user.

    Args:
        db: Database session
        user_id: Identity provider user id
        email: Optional email stored on the profile
        force: Reset an existing subscription record to the free plan

    Returns:
        The user's subscription record
    """
    ensure_free_plan(db)
    profile = ProfileRepository(db).get_or_create(user_id, email=email)

    subscription = SubscriptionRepository(db).get(user_id)
    if subscription is None:
        logger.info(f"Creating free subscription for user_id={user_id}")
        subscription = UserSubscription(user_id=user_id)
        db.add(subscription)
    elif not force:
        logger.info(f"User {user_id} already has a subscription record on plan={subscription.plan_id}")
        db.commit()
        return subscription
    else:
        logger.info(f"Resetting user_id={user_id} from plan={subscription.plan_id} to free")

    for column, value in free_plan_fields(profile.stripe_customer_id).items():
        setattr(subscription, column, value)
    subscription.current_period_start = datetime.now(timezone.utc)

    db.commit()
    db.refresh(subscription)
    return subscription


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Provision a user on the free plan")
    parser.add_argument("user_id")
    parser.add_argument("--email", default=None)
    parser.add_argument("--force", action="store_true", help="reset an existing record to free")
    parser.add_argument("--create-tables", action="store_true", help="create missing tables first (local SQLite)")
    args = parser.parse_args(argv)

    if args.create_tables:
        init_db()

    db = SessionLocal()
    try:
        subscription = provision_free_user(db, args.user_id, email=args.email, force=args.force)
        logger.info(f"User {args.user_id} is on plan={subscription.plan_id} status={subscription.status}")
        return 0
    except Exception:
        db.rollback()
        logger.exception(f"Failed to provision user {args.user_id}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
