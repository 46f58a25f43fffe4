"""
Subscription upsert engine.

Applies Stripe subscription snapshots to the user's single UserSubscription
record. Every reconciled field is overwritten from the snapshot, so applying
the same snapshot twice is a no-op and the record always reflects the last
snapshot applied.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.db.models.user_subscription import SUBSCRIPTION_STATUSES, UserSubscription
from app.db.repositories import PlanRepository, ProfileRepository, SubscriptionRepository
from app.schemas.stripe_events import SubscriptionSnapshot
from app.services.resolvers import resolve_customer_to_user, resolve_price_to_plan

logger = logging.getLogger(__name__)

FREE_PLAN_ID = "free"


@dataclass
class UpsertOutcome:
    """Result of applying a snapshot to a user's subscription record."""
    user_id: str
    plan_id: str
    subscription: UserSubscription
    created: bool = False
    mirror_error: Optional[str] = None


def from_unix(timestamp: Optional[int]) -> Optional[datetime]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def billing_interval_for(snapshot: SubscriptionSnapshot) -> str:
    """Yearly prices bill per year; everything else is treated as monthly."""
    price = snapshot.price
    if price and price.recurring and price.recurring.interval == "year":
        return "year"
    return "month"


def snapshot_fields(snapshot: SubscriptionSnapshot, plan_id: str) -> Dict[str, Any]:
    """
    Derive the full set of reconciled columns from a snapshot.

    Raises:
        ValidationError: If the snapshot status is not one UserSubscription stores
    """
    status = snapshot.status or "incomplete"
    if status not in SUBSCRIPTION_STATUSES:
        raise ValidationError(f"Unsupported subscription status '{status}' for subscription: {snapshot.id}")

    return {
        "plan_id": plan_id,
        "stripe_subscription_id": snapshot.id,
        "stripe_customer_id": snapshot.customer_id,
        "status": status,
        "current_period_start": from_unix(snapshot.period_start),
        "current_period_end": from_unix(snapshot.period_end),
        "cancel_at_period_end": bool(snapshot.cancel_at_period_end),
        "billing_interval": billing_interval_for(snapshot),
        "trial_start": from_unix(snapshot.trial_start),
        "trial_end": from_unix(snapshot.trial_end),
    }


def free_plan_fields(customer_id: Optional[str]) -> Dict[str, Any]:
    return {
        "plan_id": FREE_PLAN_ID,
        "stripe_subscription_id": None,
        "stripe_customer_id": customer_id,
        "status": "active",
        "current_period_start": datetime.now(timezone.utc),
        "current_period_end": None,
        "cancel_at_period_end": False,
        "billing_interval": None,
        "trial_start": None,
        "trial_end": None,
    }


def _replace_record(db: Session, user_id: str, fields: Dict[str, Any]) -> Tuple[UserSubscription, bool]:
    record = SubscriptionRepository(db).get(user_id)
    created = record is None
    if created:
        # Provisioning normally creates the free record at signup
        logger.warning(f"No subscription record for user_id={user_id}, creating one")
        record = UserSubscription(user_id=user_id)
        db.add(record)

    for column, value in fields.items():
        setattr(record, column, value)

    db.commit()
    db.refresh(record)
    return record, created


def mirror_to_profile(
    db: Session,
    user_id: str,
    customer_id: Optional[str],
    price_id: Optional[str],
    product_id: Optional[str],
) -> Optional[str]:
    """
    Copy the customer/price/product references onto UserProfile for display.

    Best-effort: runs after the subscription commit, never rolls it back, and
    reports failure through its return value.

    Returns:
        None on success, otherwise the error message
    """
    try:
        profile = ProfileRepository(db).get_or_create(user_id)
        if customer_id:
            profile.stripe_customer_id = customer_id
        profile.stripe_price_id = price_id
        profile.stripe_product_id = product_id
        db.commit()
        return None
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to mirror subscription onto profile: user_id={user_id}, error={e}")
        return str(e)


def apply_subscription_snapshot(db: Session, snapshot: SubscriptionSnapshot) -> UpsertOutcome:
    """
    Replace the user's subscription record with a Stripe snapshot.

    Args:
        db: Database session
        snapshot: Full current state of the Stripe subscription

    Returns:
        UpsertOutcome describing the applied write

    Raises:
        ValidationError: If the snapshot has no subscription id or an unsupported status
        NotFoundError: If the customer or price cannot be resolved (nothing is written)
    """
    if not snapshot.id:
        raise ValidationError("Subscription snapshot has no id")

    user_id = resolve_customer_to_user(ProfileRepository(db), snapshot.customer)

    price = snapshot.price
    if not price or not price.id:
        raise NotFoundError(f"No price ID in subscription: {snapshot.id}")
    plan_id = resolve_price_to_plan(PlanRepository(db), price.id)

    record, created = _replace_record(db, user_id, snapshot_fields(snapshot, plan_id))

    logger.info(
        f"Subscription synced: user_id={user_id}, plan={plan_id}, status={record.status}, "
        f"interval={record.billing_interval}, subscription_id={snapshot.id}"
    )

    mirror_error = mirror_to_profile(db, user_id, snapshot.customer_id, price.id, price.product_id)

    return UpsertOutcome(
        user_id=user_id,
        plan_id=plan_id,
        subscription=record,
        created=created,
        mirror_error=mirror_error,
    )


def revert_to_free(db: Session, snapshot: SubscriptionSnapshot) -> Optional[UpsertOutcome]:
    """
    Revert a user to the free plan after their Stripe subscription was deleted.

    A deletion for a subscription other than the one on record (an older
    subscription replaced by a newer one) leaves the record untouched.

    Returns:
        UpsertOutcome, or None if the deletion did not concern the current subscription

    Raises:
        NotFoundError: If the customer cannot be resolved
    """
    user_id = resolve_customer_to_user(ProfileRepository(db), snapshot.customer)

    current = SubscriptionRepository(db).get(user_id)
    if (
        current is not None
        and current.stripe_subscription_id
        and snapshot.id
        and current.stripe_subscription_id != snapshot.id
    ):
        logger.info(
            f"Ignoring deletion of superseded subscription: user_id={user_id}, "
            f"deleted={snapshot.id}, current={current.stripe_subscription_id}"
        )
        return None

    record, created = _replace_record(db, user_id, free_plan_fields(snapshot.customer_id))

    logger.info(f"Subscription deleted: user_id={user_id}, reverted to free, subscription_id={snapshot.id}")

    mirror_error = mirror_to_profile(db, user_id, snapshot.customer_id, None, None)

    return UpsertOutcome(
        user_id=user_id,
        plan_id=FREE_PLAN_ID,
        subscription=record,
        created=created,
        mirror_error=mirror_error,
    )
