"""
Stripe service: thin wrappers around the Stripe API and webhook verification.

Every Stripe call in the billing engine goes through this module so the
secret key is checked per request and Stripe failures surface as
ProviderApiError.
"""
import json
import logging
from typing import Any, Dict, List, Optional
import stripe

from app.core import config
from app.core.errors import ConfigurationError, InvalidSignatureError, ProviderApiError

logger = logging.getLogger(__name__)


def ensure_configured() -> None:
    """
    Point the Stripe client at the configured secret key.

    Raises:
        ConfigurationError: If STRIPE_SECRET_KEY is not set
    """
    if not config.STRIPE_SECRET_KEY:
        logger.error("STRIPE_SECRET_KEY not configured - Stripe features disabled")
        raise ConfigurationError("Stripe secret key not configured")
    stripe.api_key = config.STRIPE_SECRET_KEY
    if config.STRIPE_API_VERSION:
        stripe.api_version = config.STRIPE_API_VERSION


def to_dict(obj: Any) -> Dict[str, Any]:
    """Convert a Stripe API object into plain JSON-compatible dicts."""
    if obj is None:
        return {}
    if isinstance(obj, stripe.StripeObject):
        return json.loads(str(obj))
    if isinstance(obj, dict):
        return obj
    raise TypeError(f"Unexpected Stripe object type: {type(obj).__name__}")


def _provider_error(action: str, error: Exception) -> ProviderApiError:
    logger.error(f"Stripe error during {action}: {error}")
    if isinstance(error, stripe.RateLimitError):
        return ProviderApiError("Too many requests. Please try again in a moment.", status_code=429)
    if isinstance(error, stripe.APIConnectionError):
        return ProviderApiError("Payment service temporarily unavailable. Please try again.", status_code=503)
    return ProviderApiError(f"Failed to {action}: {error}")


def verify_webhook(request_body: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Verify and parse Stripe webhook event.

    Args:
        request_body: Raw request body bytes
        signature: Stripe-Signature header value

    Returns:
        Parsed event envelope as a dict

    Raises:
        ConfigurationError: If STRIPE_WEBHOOK_SECRET is not configured
        InvalidSignatureError: If the signature or payload is invalid
    """
    if not config.STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        raise ConfigurationError("Stripe webhook secret not configured", status_code=400)

    if not signature:
        raise InvalidSignatureError("Missing Stripe signature")

    try:
        event = stripe.Webhook.construct_event(
            payload=request_body,
            sig_header=signature,
            secret=config.STRIPE_WEBHOOK_SECRET,
            tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
        )
    except stripe.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise InvalidSignatureError(f"Invalid signature: {e}")
    except (ValueError, TypeError, AttributeError) as e:
        # Malformed JSON or a payload that is not an event object
        logger.error(f"Invalid webhook payload: {e}")
        raise InvalidSignatureError(f"Invalid webhook payload: {e}")

    envelope = to_dict(event)
    logger.info(f"Verified webhook event: {envelope.get('type')}, id={envelope.get('id')}")
    return envelope


def create_customer(email: Optional[str], user_id: str, source: str = "checkout") -> str:
    """Create a Stripe customer tagged with the internal user id and return its id."""
    ensure_configured()
    params: Dict[str, Any] = {"metadata": {"userId": user_id, "source": source}}
    if email:
        params["email"] = email
    try:
        customer = stripe.Customer.create(**params)
    except stripe.StripeError as e:
        raise _provider_error("create customer", e)
    customer_id = to_dict(customer).get("id")
    logger.info(f"Created Stripe customer: customer_id={customer_id}, user_id={user_id}")
    return customer_id


def create_checkout_session(params: Dict[str, Any]) -> Dict[str, Any]:
    ensure_configured()
    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        raise _provider_error("create checkout session", e)
    return to_dict(session)


def create_portal_session(params: Dict[str, Any]) -> Dict[str, Any]:
    ensure_configured()
    try:
        session = stripe.billing_portal.Session.create(**params)
    except stripe.StripeError as e:
        raise _provider_error("create portal session", e)
    return to_dict(session)


# Subscriptions a customer can still update or cancel from the portal
MANAGEABLE_SUBSCRIPTION_STATUSES = ("active", "trialing")


def find_active_subscription(customer_id: str) -> Optional[Dict[str, Any]]:
    """Return the customer's first active or trialing Stripe subscription, or None."""
    ensure_configured()
    try:
        # Without a status filter Stripe lists every subscription except canceled ones
        result = stripe.Subscription.list(customer=customer_id, limit=10)
    except stripe.StripeError as e:
        raise _provider_error("list subscriptions", e)
    for subscription in to_dict(result).get("data") or []:
        if subscription.get("status") in MANAGEABLE_SUBSCRIPTION_STATUSES:
            return subscription
    return None


def set_cancel_at_period_end(subscription_id: str, cancel: bool) -> Dict[str, Any]:
    """Flip cancel_at_period_end on Stripe and return the subscription's new full state."""
    ensure_configured()
    try:
        subscription = stripe.Subscription.modify(subscription_id, cancel_at_period_end=cancel)
    except stripe.StripeError as e:
        raise _provider_error("update subscription", e)
    logger.info(f"Set cancel_at_period_end={cancel} on subscription_id={subscription_id}")
    return to_dict(subscription)


def get_default_card(customer_id: str) -> Optional[Dict[str, Any]]:
    """
    Return the customer's default card summary (brand, last4, expiry).

    Falls back to the first attached card when no default payment method is set.
    """
    ensure_configured()
    try:
        customer = to_dict(stripe.Customer.retrieve(
            customer_id, expand=["invoice_settings.default_payment_method"]
        ))
        if not customer or customer.get("deleted"):
            return None

        payment_method = (customer.get("invoice_settings") or {}).get("default_payment_method")
        if not isinstance(payment_method, dict):
            methods = to_dict(stripe.PaymentMethod.list(customer=customer_id, type="card", limit=10))
            data = methods.get("data") or []
            payment_method = data[0] if data else None
    except stripe.StripeError as e:
        raise _provider_error("retrieve payment method", e)

    card = (payment_method or {}).get("card")
    if not card:
        return None
    return {
        "type": "card",
        "brand": card.get("brand"),
        "last4": card.get("last4"),
        "expMonth": card.get("exp_month"),
        "expYear": card.get("exp_year"),
    }


def list_paid_invoices(
    customer_id: str,
    limit: int = 10,
    starting_after: Optional[str] = None
) -> Dict[str, Any]:
    ensure_configured()
    params: Dict[str, Any] = {"customer": customer_id, "limit": limit, "status": "paid"}
    if starting_after:
        params["starting_after"] = starting_after
    try:
        return to_dict(stripe.Invoice.list(**params))
    except stripe.StripeError as e:
        raise _provider_error("list invoices", e)


def list_active_products() -> List[Dict[str, Any]]:
    ensure_configured()
    try:
        return to_dict(stripe.Product.list(active=True, limit=100)).get("data") or []
    except stripe.StripeError as e:
        raise _provider_error("list products", e)


def list_active_prices() -> List[Dict[str, Any]]:
    ensure_configured()
    try:
        return to_dict(stripe.Price.list(active=True, limit=100)).get("data") or []
    except stripe.StripeError as e:
        raise _provider_error("list prices", e)
