"""
Stripe webhook ingestion.

Verifies the signed payload, parses it into a typed event and dispatches it
to one handler per event type. Once the signature is valid the delivery is
always acknowledged: handler failures are logged here and never reach the
HTTP layer, since Stripe retries any non-2xx response.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional
import pydantic
from sqlalchemy.orm import Session

from app.core.errors import BillingError, NotFoundError
from app.db.repositories import ProfileRepository
from app.schemas.stripe_events import (
    CheckoutSessionCompletedEvent,
    SubscriptionEvent,
    parse_webhook_event,
)
from app.services import stripe_service
from app.services.billing_invoice_handlers import (
    handle_invoice_payment_failed,
    handle_invoice_payment_succeeded,
)
from app.services.subscription_sync import apply_subscription_snapshot, revert_to_free

logger = logging.getLogger(__name__)


@dataclass
class WebhookResult:
    """What happened to a verified delivery (for logs and tests)."""
    event_id: Optional[str]
    event_type: Optional[str]
    handled: bool
    error: Optional[str] = None


def handle_checkout_session_completed(db: Session, event: CheckoutSessionCompletedEvent) -> None:
    """
    Link the Stripe customer created for the checkout to the user's profile.

    The subscription itself is synced by customer.subscription.created, which
    may arrive before or after this event.
    """
    session = event.data.object if event.data else None
    if session is None:
        logger.warning(f"checkout.session.completed: no session object in event {event.id}")
        return

    user_id = (session.metadata or {}).get("userId")
    if not user_id:
        logger.error(f"No userId in checkout session metadata: session_id={session.id}")
        return

    customer_id = session.customer_id
    if not customer_id:
        logger.warning(f"Checkout session has no customer: session_id={session.id}, user_id={user_id}")
        return

    profile = ProfileRepository(db).get_or_create(user_id, email=session.customer_email)
    profile.stripe_customer_id = customer_id
    db.commit()

    logger.info(
        f"Checkout completed: user_id={user_id}, customer_id={customer_id}, "
        f"plan={session.metadata.get('planId')}, session_id={session.id}"
    )


def handle_subscription_upsert(db: Session, event: SubscriptionEvent) -> None:
    snapshot = event.data.object if event.data else None
    if snapshot is None:
        logger.warning(f"{event.type}: no subscription object in event {event.id}")
        return
    apply_subscription_snapshot(db, snapshot)


def handle_subscription_deleted(db: Session, event: SubscriptionEvent) -> None:
    snapshot = event.data.object if event.data else None
    if snapshot is None:
        logger.warning(f"{event.type}: no subscription object in event {event.id}")
        return
    revert_to_free(db, snapshot)


EVENT_HANDLERS: Dict[str, Callable] = {
    "checkout.session.completed": handle_checkout_session_completed,
    "customer.subscription.created": handle_subscription_upsert,
    "customer.subscription.updated": handle_subscription_upsert,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
    "invoice.payment_failed": handle_invoice_payment_failed,
}


def dispatch_event(db: Session, envelope: dict) -> WebhookResult:
    """
    Run the handler registered for a verified event envelope.

    Never raises: each failure is logged with the event context and reported
    on the returned WebhookResult.
    """
    event_id = envelope.get("id")
    event_type = envelope.get("type")

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Ignoring unhandled webhook event: type={event_type}, id={event_id}")
        return WebhookResult(event_id=event_id, event_type=event_type, handled=False)

    try:
        event = parse_webhook_event(envelope)
        handler(db, event)
    except NotFoundError as e:
        db.rollback()
        logger.warning(f"Webhook {event_type} skipped: {e} (event_id={event_id})")
        return WebhookResult(event_id=event_id, event_type=event_type, handled=False, error=str(e))
    except (BillingError, pydantic.ValidationError) as e:
        db.rollback()
        logger.error(f"Webhook {event_type} rejected: {e} (event_id={event_id})")
        return WebhookResult(event_id=event_id, event_type=event_type, handled=False, error=str(e))
    except Exception as e:
        db.rollback()
        logger.exception(f"Webhook {event_type} handler failed (event_id={event_id})")
        return WebhookResult(event_id=event_id, event_type=event_type, handled=False, error=str(e))

    return WebhookResult(event_id=event_id, event_type=event_type, handled=True)


def process_webhook(db: Session, payload: bytes, signature: Optional[str]) -> WebhookResult:
    """
    Verify a Stripe delivery and dispatch it.

    Args:
        db: Database session
        payload: Raw request body
        signature: Stripe-Signature header value

    Returns:
        WebhookResult for the delivered event

    Raises:
        ConfigurationError: If Stripe secrets are missing
        InvalidSignatureError: If the payload is not signed by Stripe
    """
    stripe_service.ensure_configured()
    envelope = stripe_service.verify_webhook(payload, signature)
    return dispatch_event(db, envelope)
