"""
Plan catalog service.

Lists the active plans and seeds the catalog from Stripe products and prices.
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from app.db.models.subscription_plan import SubscriptionPlan
from app.db.repositories import PlanRepository
from app.services import stripe_service

logger = logging.getLogger(__name__)


def yearly_savings(monthly_price: float, yearly_price: float) -> float:
    return max(0, round((monthly_price * 12) - yearly_price, 2))


def list_active_plans(db: Session) -> List[Dict[str, Any]]:
    """Return the active catalog with camelCase keys and yearly savings."""
    return [
        {
            "id": plan.plan_id,
            "name": plan.name,
            "description": plan.description,
            "monthlyPrice": plan.monthly_price,
            "yearlyPrice": plan.yearly_price,
            "currency": plan.currency,
            "stripeMonthlyPriceId": plan.stripe_monthly_price_id,
            "stripeYearlyPriceId": plan.stripe_yearly_price_id,
            "stripeProductId": plan.stripe_product_id,
            "yearlySavings": yearly_savings(plan.monthly_price or 0, plan.yearly_price or 0),
        }
        for plan in PlanRepository(db).list_active()
    ]


def _price_for_interval(prices: List[Dict[str, Any]], interval: str) -> Optional[Dict[str, Any]]:
    for price in prices:
        if (price.get("recurring") or {}).get("interval") == interval:
            return price
    return None


def _price_amount(price: Dict[str, Any]) -> float:
    return (price.get("unit_amount") or 0) / 100


def _metadata_amount(metadata: Dict[str, Any], key: str) -> float:
    try:
        return float(metadata.get(key) or 0) / 100
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric product metadata {key}={metadata.get(key)!r}")
        return 0


def sync_plans_from_stripe(db: Session) -> Dict[str, int]:
    """
    Upsert SubscriptionPlan rows from active Stripe products and recurring prices.

    The plan id comes from the product's ``app_plan_id`` metadata (falling
    back to the product id); amounts are converted from cents.

    Returns:
        Counts of created and updated plans
    """
    products = stripe_service.list_active_products()
    prices = stripe_service.list_active_prices()

    if not products:
        logger.warning("No active products found in Stripe")
        return {"created": 0, "updated": 0}

    plans = PlanRepository(db)
    created = updated = 0

    for product in products:
        metadata = product.get("metadata") or {}
        product_prices = [p for p in prices if p.get("product") == product.get("id")]
        monthly = _price_for_interval(product_prices, "month")
        yearly = _price_for_interval(product_prices, "year")

        plan_id = metadata.get("app_plan_id") or product.get("id")
        plan = plans.get(plan_id)
        if plan is None:
            plan = SubscriptionPlan(plan_id=plan_id)
            db.add(plan)
            created += 1
            logger.info(f"Creating plan: {product.get('name')} ({plan_id})")
        else:
            updated += 1
            logger.info(f"Updating plan: {product.get('name')} ({plan_id})")

        plan.name = product.get("name") or plan_id
        plan.description = product.get("description") or ""
        plan.monthly_price = (
            _price_amount(monthly) if monthly else _metadata_amount(metadata, "monthly_price")
        )
        plan.yearly_price = (
            _price_amount(yearly) if yearly else _metadata_amount(metadata, "yearly_price")
        )
        plan.currency = (metadata.get("currency") or (monthly or yearly or {}).get("currency") or "usd").upper()
        plan.stripe_monthly_price_id = monthly.get("id") if monthly else None
        plan.stripe_yearly_price_id = yearly.get("id") if yearly else None
        plan.stripe_product_id = product.get("id")
        plan.is_active = bool(product.get("active", True))

    db.commit()
    logger.info(f"Plans synced from Stripe: created={created}, updated={updated}")
    return {"created": created, "updated": updated}

