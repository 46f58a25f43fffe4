"""
Invoice event handlers for Stripe webhooks.

Handles invoice.payment_succeeded and invoice.payment_failed events. These
only resolve the owning user and log: subscription state follows the
customer.subscription.* snapshots Stripe sends alongside them.
"""
import logging
from sqlalchemy.orm import Session

from app.db.repositories import ProfileRepository
from app.schemas.stripe_events import InvoiceEvent
from app.services.resolvers import resolve_customer_to_user

logger = logging.getLogger(__name__)


def handle_invoice_payment_succeeded(db: Session, event: InvoiceEvent) -> None:
    invoice = event.data.object if event.data else None
    if invoice is None:
        logger.warning(f"invoice.payment_succeeded: no invoice object in event {event.id}")
        return

    user_id = resolve_customer_to_user(ProfileRepository(db), invoice.customer)

    logger.info(
        f"Invoice payment succeeded: user_id={user_id}, invoice_id={invoice.id}, "
        f"subscription_id={invoice.subscription_id}, amount_paid={invoice.amount_paid} {invoice.currency}"
    )


def handle_invoice_payment_failed(db: Session, event: InvoiceEvent) -> None:
    invoice = event.data.object if event.data else None
    if invoice is None:
        logger.warning(f"invoice.payment_failed: no invoice object in event {event.id}")
        return

    user_id = resolve_customer_to_user(ProfileRepository(db), invoice.customer)

    logger.warning(
        f"Invoice payment failed: user_id={user_id}, invoice_id={invoice.id}, "
        f"subscription_id={invoice.subscription_id}, attempt_count={invoice.attempt_count}"
    )
