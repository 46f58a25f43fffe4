"""
Seed the plan catalog from active Stripe products and prices.

Run: python -m scripts.sync_plans
"""
import logging
import sys

from app.core.errors import BillingError
from app.db.session import SessionLocal
from app.services.plan_service import sync_plans_from_stripe

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> int:
    db = SessionLocal()
    try:
        counts = sync_plans_from_stripe(db)
    except BillingError as e:
        db.rollback()
        logger.error(f"Plan sync failed: {e}")
        return 1
    finally:
        db.close()

    print(f"\n[SUCCESS] Plans synced: {counts['created']} created, {counts['updated']} updated")
    return 0


if __name__ == "__main__":
    sys.exit(main())
