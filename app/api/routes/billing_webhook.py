import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.auth_dependency import get_db
from app.core.errors import BillingError
from app.services.billing_webhook_service import process_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing Webhook"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    """
    Receive Stripe webhook events.

    Any event with a valid signature is acknowledged, even when its handler
    could not apply it; those failures are only visible in the logs.
    """
    payload = await request.body()

    try:
        result = process_webhook(db, payload, stripe_signature)
    except BillingError as e:
        logger.error(f"Webhook rejected: {e}")
        raise HTTPException(status_code=e.status_code, detail=str(e))

    if result.error:
        logger.warning(f"Webhook acknowledged with handler error: type={result.event_type}, id={result.event_id}")

    return {"received": True}
