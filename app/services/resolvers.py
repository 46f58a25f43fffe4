"""
Identity and plan resolution for Stripe references.

Maps Stripe customer ids to internal user ids (and back) and Stripe price ids
to catalog plan ids. A failed lookup raises NotFoundError; webhook handlers
treat it as non-fatal and skip the mutation.
"""
import logging
from typing import Any

from app.core.errors import NotFoundError
from app.db.repositories import PlanRepository, ProfileRepository
from app.schemas.stripe_events import ref_id

logger = logging.getLogger(__name__)


def resolve_customer_to_user(profiles: ProfileRepository, customer_ref: Any) -> str:
    """
    Resolve a Stripe customer reference to the internal user id.

    Args:
        profiles: Profile repository
        customer_ref: Customer id or expanded customer object

    Returns:
        The user id owning that Stripe customer

    Raises:
        NotFoundError: If the reference is empty or no profile holds it
    """
    customer_id = ref_id(customer_ref)
    if not customer_id:
        raise NotFoundError("Missing Stripe customer reference")

    profile = profiles.find_by_customer_id(customer_id)
    if not profile:
        raise NotFoundError(f"No user found for Stripe customer: {customer_id}")

    return profile.user_id


def resolve_user_to_customer(profiles: ProfileRepository, user_id: str) -> str:
    """Return the Stripe customer id of a user, raising NotFoundError if none is linked."""
    profile = profiles.get(user_id)
    if not profile or not profile.stripe_customer_id:
        raise NotFoundError("No Stripe customer found - complete subscription setup first")
    return profile.stripe_customer_id


def resolve_price_to_plan(plans: PlanRepository, price_ref: Any) -> str:
    """
    Resolve a Stripe price reference to the catalog plan id.

    A price matches a plan through either its monthly or its yearly price id.

    Raises:
        NotFoundError: If the reference is empty or matches no plan
    """
    price_id = ref_id(price_ref)
    if not price_id:
        raise NotFoundError("Missing Stripe price reference")

    plan = plans.find_by_price_id(price_id)
    if not plan:
        raise NotFoundError(f"Plan not found for Stripe price ID: {price_id}")

    if not plan.is_active:
        logger.warning(f"Price {price_id} resolves to inactive plan {plan.plan_id}")

    return plan.plan_id
