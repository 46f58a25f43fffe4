"""
Billing service for Stripe integration.

Issues hosted checkout sessions and self-service billing portal sessions.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse
from sqlalchemy.orm import Session

from app.core import config
from app.core.auth_dependency import AuthenticatedUser
from app.core.errors import ValidationError
from app.db.models.user_subscription import BILLING_INTERVALS
from app.db.repositories import ProfileRepository
from app.services import stripe_service
from app.services.resolvers import resolve_user_to_customer

logger = logging.getLogger(__name__)

PORTAL_FLOW_TYPES = (
    "subscription_update",
    "subscription_cancel",
    "payment_method_update",
    "subscription_update_confirm",
)
SUBSCRIPTION_FLOW_TYPES = {"subscription_update", "subscription_cancel", "subscription_update_confirm"}

# Stripe portal sessions are valid for one hour
PORTAL_SESSION_TTL_SECONDS = 3600


@dataclass
class CustomerResolution:
    customer_id: str
    created: bool

    @property
    def branch(self) -> str:
        return "created" if self.created else "reused"


def get_or_create_customer(db: Session, user: AuthenticatedUser, source: str = "checkout") -> CustomerResolution:
    """
    Return the user's Stripe customer, creating and persisting one if needed.

    Args:
        db: Database session
        user: Authenticated user
        source: Where the customer is being created from (stored in Stripe metadata)

    Returns:
        CustomerResolution with the customer id and whether it was just created
    """
    profiles = ProfileRepository(db)
    profile = profiles.get_or_create(user.user_id, email=user.email)

    if profile.stripe_customer_id:
        db.commit()
        logger.info(f"Reusing Stripe customer: customer_id={profile.stripe_customer_id}, user_id={user.user_id}")
        return CustomerResolution(customer_id=profile.stripe_customer_id, created=False)

    customer_id = stripe_service.create_customer(user.email, user.user_id, source=source)
    profile.stripe_customer_id = customer_id
    db.commit()

    return CustomerResolution(customer_id=customer_id, created=True)


def create_checkout_session(
    db: Session,
    user: AuthenticatedUser,
    price_id: Optional[str],
    plan_id: Optional[str],
    billing_interval: Optional[str],
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, str]:
    """
    Create a Stripe checkout session for a subscription price.

    Args:
        db: Database session
        user: Authenticated user
        price_id: Stripe price to subscribe to
        plan_id: Internal plan the price belongs to
        billing_interval: 'month' or 'year'
        success_url: Redirect after payment (defaults to FRONTEND_URL/settings/billing?success=true)
        cancel_url: Redirect on cancel (defaults to FRONTEND_URL/pricing?canceled=true)

    Returns:
        Dictionary with 'url' and 'sessionId'

    Raises:
        ConfigurationError: If Stripe is not configured
        ValidationError: If a required parameter is missing
        ProviderApiError: If Stripe rejects the request
    """
    stripe_service.ensure_configured()

    missing = [
        name for name, value in (
            ("priceId", price_id),
            ("planId", plan_id),
            ("billingInterval", billing_interval),
        )
        if not value
    ]
    if missing:
        raise ValidationError(f"Missing required parameters: {', '.join(missing)}")
    if billing_interval not in BILLING_INTERVALS:
        raise ValidationError("billingInterval must be 'month' or 'year'")

    customer = get_or_create_customer(db, user, source="checkout")

    metadata = {
        "userId": user.user_id,
        "planId": plan_id,
        "billingInterval": billing_interval,
    }
    session = stripe_service.create_checkout_session({
        "customer": customer.customer_id,
        "payment_method_types": ["card"],
        "mode": "subscription",
        "line_items": [{
            "price": price_id,
            "quantity": 1,
        }],
        "success_url": success_url or f"{config.FRONTEND_URL}/settings/billing?success=true",
        "cancel_url": cancel_url or f"{config.FRONTEND_URL}/pricing?canceled=true",
        "metadata": metadata,
        "subscription_data": {"metadata": metadata},
    })

    logger.info(
        f"Created checkout session: session_id={session.get('id')}, user_id={user.user_id}, "
        f"plan={plan_id}, interval={billing_interval}, customer={customer.branch}"
    )

    return {"url": session.get("url"), "sessionId": session.get("id")}


def validate_return_url(return_url: Optional[str]) -> str:
    """Only allow return URLs on the frontend's origin; anything else gets the billing page."""
    default_return_url = f"{config.FRONTEND_URL}/settings/billing"
    if not return_url:
        return default_return_url

    allowed = urlparse(config.FRONTEND_URL)
    candidate = urlparse(return_url)
    if candidate.scheme in ("http", "https") and (candidate.scheme, candidate.netloc) == (allowed.scheme, allowed.netloc):
        return return_url

    logger.warning(f"Invalid return URL rejected: {return_url} (expected origin: {config.FRONTEND_URL})")
    return default_return_url


def build_flow_data(
    flow_type: str,
    subscription: Optional[Dict[str, Any]],
    price_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Build the portal flow_data payload, or None when the flow cannot target anything.

    Subscription flows need an active subscription; update_confirm also needs
    the target price and falls back to a plain update flow without it.
    """
    if flow_type == "payment_method_update":
        return {"type": "payment_method_update"}

    if not subscription or not subscription.get("id"):
        return None

    subscription_id = subscription["id"]

    if flow_type == "subscription_cancel":
        return {
            "type": "subscription_cancel",
            "subscription_cancel": {"subscription": subscription_id},
        }

    if flow_type == "subscription_update_confirm":
        items = (subscription.get("items") or {}).get("data") or []
        item_id = items[0].get("id") if items else None
        if price_id and item_id:
            return {
                "type": "subscription_update_confirm",
                "subscription_update_confirm": {
                    "subscription": subscription_id,
                    "items": [{"id": item_id, "price": price_id, "quantity": 1}],
                },
            }
        logger.info(f"subscription_update_confirm without target price, using subscription_update: {subscription_id}")

    return {
        "type": "subscription_update",
        "subscription_update": {"subscription": subscription_id},
    }


def create_portal_session(
    db: Session,
    user: AuthenticatedUser,
    flow_type: Optional[str] = None,
    return_url: Optional[str] = None,
    configuration_id: Optional[str] = None,
    price_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a Stripe customer portal session, optionally scoped to a flow.

    A user without an active Stripe subscription still gets a generic portal
    session when a subscription flow is requested.

    Returns:
        Dictionary with url, created, expires_at, flow_type and return_url

    Raises:
        ConfigurationError: If Stripe is not configured
        ValidationError: If flow_type is not a supported flow
        NotFoundError: If the user has no Stripe customer yet
        ProviderApiError: If Stripe rejects the request
    """
    stripe_service.ensure_configured()

    if flow_type and flow_type not in PORTAL_FLOW_TYPES:
        raise ValidationError(f"Unsupported flow_type: {flow_type}")

    customer_id = resolve_user_to_customer(ProfileRepository(db), user.user_id)
    validated_return_url = validate_return_url(return_url)

    params: Dict[str, Any] = {
        "customer": customer_id,
        "return_url": validated_return_url,
    }
    configuration = configuration_id or config.STRIPE_PORTAL_CONFIGURATION_ID
    if configuration:
        params["configuration"] = configuration

    flow_data = None
    if flow_type:
        subscription = None
        if flow_type in SUBSCRIPTION_FLOW_TYPES:
            subscription = stripe_service.find_active_subscription(customer_id)
            if subscription is None:
                logger.info(f"No active subscription for customer_id={customer_id}, opening generic portal")
        flow_data = build_flow_data(flow_type, subscription, price_id)
        if flow_data:
            params["flow_data"] = flow_data

    session = stripe_service.create_portal_session(params)
    created = session.get("created")

    logger.info(
        f"Created portal session: session_id={session.get('id')}, user_id={user.user_id}, "
        f"flow={flow_data['type'] if flow_data else None}"
    )

    return {
        "url": session.get("url"),
        "created": created,
        "expires_at": created + PORTAL_SESSION_TTL_SECONDS if created else None,
        "flow_type": flow_type,
        "return_url": validated_return_url,
    }
