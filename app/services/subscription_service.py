"""
Subscription read, cancel and resume operations.

Cancel and resume delegate to Stripe and then re-derive the local record
from the subscription Stripe returns, through the same upsert engine the
webhooks use.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from app.core.auth_dependency import AuthenticatedUser
from app.core.errors import NotFoundError, ProviderApiError, ValidationError
from app.db.repositories import ProfileRepository, SubscriptionRepository
from app.schemas.billing import subscription_to_dict
from app.schemas.stripe_events import SubscriptionSnapshot
from app.services import stripe_service
from app.services.subscription_sync import apply_subscription_snapshot

logger = logging.getLogger(__name__)


def get_subscription_overview(db: Session, user: AuthenticatedUser) -> Dict[str, Any]:
    """
    Get the user's subscription, its plan, and their default card.

    The card lookup is best-effort: Stripe failures leave paymentMethod as None.

    Raises:
        NotFoundError: If the user has no subscription record
    """
    subscription = SubscriptionRepository(db).get(user.user_id)
    if not subscription:
        raise NotFoundError("No subscription found for user")

    plan = subscription.plan
    monthly_price = plan.monthly_price if plan else 0
    yearly_price = plan.yearly_price if plan else 0
    is_yearly = subscription.billing_interval == "year"

    payment_method = None
    if subscription.stripe_customer_id:
        try:
            payment_method = stripe_service.get_default_card(subscription.stripe_customer_id)
        except ProviderApiError as e:
            logger.warning(f"Could not fetch payment method from Stripe: user_id={user.user_id}, error={e}")

    return {
        "subscription": subscription_to_dict(subscription),
        "plan": {
            "id": plan.plan_id if plan else subscription.plan_id,
            "name": plan.name if plan else "Unknown Plan",
            "description": plan.description if plan else None,
            "monthlyPrice": monthly_price,
            "yearlyPrice": yearly_price,
            "currency": plan.currency if plan else "USD",
            "price": round(yearly_price / 12, 2) if is_yearly else monthly_price,
            "interval": "year" if is_yearly else "month",
        },
        "paymentMethod": payment_method,
    }


def _set_cancel_at_period_end(db: Session, user: AuthenticatedUser, cancel: bool) -> Dict[str, Any]:
    subscription = SubscriptionRepository(db).get(user.user_id)
    if not subscription or not subscription.stripe_subscription_id:
        raise NotFoundError("No active subscription found")

    if not cancel and not subscription.cancel_at_period_end:
        raise ValidationError("Subscription is not scheduled for cancellation")

    updated = stripe_service.set_cancel_at_period_end(subscription.stripe_subscription_id, cancel)
    outcome = apply_subscription_snapshot(db, SubscriptionSnapshot.model_validate(updated))

    logger.info(
        f"Subscription {'cancel scheduled' if cancel else 'resumed'}: user_id={user.user_id}, "
        f"subscription_id={subscription.stripe_subscription_id}"
    )
    return subscription_to_dict(outcome.subscription)


def cancel_subscription(db: Session, user: AuthenticatedUser) -> Dict[str, Any]:
    """Cancel the user's subscription at the end of the current period."""
    stripe_service.ensure_configured()
    return _set_cancel_at_period_end(db, user, cancel=True)


def resume_subscription(db: Session, user: AuthenticatedUser) -> Dict[str, Any]:
    """Undo a pending cancel-at-period-end."""
    stripe_service.ensure_configured()
    return _set_cancel_at_period_end(db, user, cancel=False)


def _iso_from_unix(timestamp: Optional[int]) -> Optional[str]:
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _cents(amount: Optional[int]) -> float:
    return (amount or 0) / 100


def _invoice_description(invoice: Dict[str, Any]) -> str:
    if invoice.get("description"):
        return invoice["description"]
    lines = (invoice.get("lines") or {}).get("data") or []
    if lines:
        line = lines[0]
        if line.get("description"):
            return line["description"]
        price = line.get("price") or {}
        if price.get("nickname"):
            return price["nickname"]
    return "Subscription Payment"


def list_invoices(
    db: Session,
    user: AuthenticatedUser,
    limit: int = 10,
    starting_after: Optional[str] = None
) -> Dict[str, Any]:
    """
    List the user's paid invoices from Stripe, amounts converted from cents.

    Users without a Stripe customer get an empty list.
    """
    stripe_service.ensure_configured()

    profile = ProfileRepository(db).get(user.user_id)
    if not profile or not profile.stripe_customer_id:
        return {"invoices": [], "hasMore": False, "totalCount": 0}

    result = stripe_service.list_paid_invoices(profile.stripe_customer_id, limit, starting_after)
    invoices = []
    for invoice in result.get("data") or []:
        lines = (invoice.get("lines") or {}).get("data") or []
        invoices.append({
            "id": invoice.get("id"),
            "number": invoice.get("number"),
            "date": _iso_from_unix(invoice.get("created")),
            "dueDate": _iso_from_unix(invoice.get("due_date")),
            "amount": _cents(invoice.get("amount_paid")),
            "currency": (invoice.get("currency") or "usd").upper(),
            "status": invoice.get("status"),
            "description": _invoice_description(invoice),
            "downloadUrl": invoice.get("invoice_pdf"),
            "hostedUrl": invoice.get("hosted_invoice_url"),
            "lines": [
                {
                    "description": line.get("description"),
                    "amount": _cents(line.get("amount")),
                    "quantity": line.get("quantity"),
                    "period": {
                        "start": _iso_from_unix((line.get("period") or {}).get("start")),
                        "end": _iso_from_unix((line.get("period") or {}).get("end")),
                    } if line.get("period") else None,
                }
                for line in lines
            ],
            "subtotal": _cents(invoice.get("subtotal")),
            "tax": _cents(invoice.get("tax")),
            "total": _cents(invoice.get("total")),
        })

    return {
        "invoices": invoices,
        "hasMore": bool(result.get("has_more")),
        "totalCount": len(invoices),
    }
