"""
Billing endpoints: checkout, customer portal, plans, and subscription management.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core import config
from app.core.auth_dependency import AuthenticatedUser, get_current_user, get_db
from app.core.errors import BillingError
from app.schemas.billing import (
    BillingErrorResponse,
    BillingResponse,
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    CreatePortalSessionRequest,
    CreatePortalSessionResponse,
    PlanListResponse,
)
from app.services import billing_service, plan_service, subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])

ERROR_RESPONSES = {
    400: {"model": BillingErrorResponse},
    404: {"model": BillingErrorResponse},
    500: {"model": BillingErrorResponse},
}


def _http_error(error: BillingError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=str(error))


@router.post("/checkout", response_model=CreateCheckoutSessionResponse, responses=ERROR_RESPONSES)
def create_checkout(
    request: CreateCheckoutSessionRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a Stripe checkout session for a plan price.

    Returns the hosted checkout URL and session id.
    """
    try:
        data = billing_service.create_checkout_session(
            db,
            user,
            price_id=request.price_id,
            plan_id=request.plan_id,
            billing_interval=request.billing_interval,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
        )
    except BillingError as e:
        logger.error(f"Checkout error: user_id={user.user_id}, error={e}")
        raise _http_error(e)

    return {"success": True, "data": data}


@router.post("/portal", response_model=CreatePortalSessionResponse, responses=ERROR_RESPONSES)
def create_portal(
    request: Optional[CreatePortalSessionRequest] = None,
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Create a Stripe customer portal session.

    Requires the user to already have a Stripe customer (any checkout creates one).
    """
    request = request or CreatePortalSessionRequest()
    try:
        data = billing_service.create_portal_session(
            db,
            user,
            flow_type=request.flow_type,
            return_url=request.return_url,
            configuration_id=request.configuration_id,
            price_id=request.price_id,
        )
    except BillingError as e:
        logger.error(f"Portal session creation failed: user_id={user.user_id}, error={e}")
        raise _http_error(e)

    return {"success": True, "data": data}


@router.get("/plans", response_model=PlanListResponse)
def get_plans(db: Session = Depends(get_db)):
    """List active subscription plans and the publishable key the client loads Stripe.js with."""
    plans = plan_service.list_active_plans(db)
    return {
        "success": True,
        "data": {"plans": plans, "count": len(plans), "publishableKey": config.STRIPE_PUBLIC_KEY},
    }


@router.get("/subscription", response_model=BillingResponse, responses=ERROR_RESPONSES)
def get_subscription(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get the authenticated user's subscription, plan, and payment method."""
    try:
        data = subscription_service.get_subscription_overview(db, user)
    except BillingError as e:
        raise _http_error(e)
    return {"success": True, "data": data}


@router.post("/cancel", response_model=BillingResponse, responses=ERROR_RESPONSES)
def cancel_subscription(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cancel the subscription at the end of the current billing period."""
    try:
        data = subscription_service.cancel_subscription(db, user)
    except BillingError as e:
        logger.error(f"Cancel subscription error: user_id={user.user_id}, error={e}")
        raise _http_error(e)
    return {"success": True, "data": data}


@router.post("/resume", response_model=BillingResponse, responses=ERROR_RESPONSES)
def resume_subscription(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Resume a subscription that is scheduled for cancellation."""
    try:
        data = subscription_service.resume_subscription(db, user)
    except BillingError as e:
        logger.error(f"Resume subscription error: user_id={user.user_id}, error={e}")
        raise _http_error(e)
    return {"success": True, "data": data}


@router.get("/invoices", response_model=BillingResponse, responses=ERROR_RESPONSES)
def get_invoices(
    limit: int = Query(10, ge=1, le=100),
    starting_after: Optional[str] = Query(None, alias="startingAfter"),
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the authenticated user's paid invoices."""
    try:
        data = subscription_service.list_invoices(db, user, limit=limit, starting_after=starting_after)
    except BillingError as e:
        raise _http_error(e)
    return {"success": True, "data": data}
