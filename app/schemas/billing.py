"""
Pydantic schemas for billing endpoints.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while keeping snake_case attributes."""
    model_config = ConfigDict(populate_by_name=True)


class CreateCheckoutSessionRequest(CamelModel):
    """Request schema for creating checkout session.

    Fields are optional here so the checkout issuer reports what is missing.
    """
    price_id: Optional[str] = Field(None, alias="priceId", description="Stripe price ID")
    plan_id: Optional[str] = Field(None, alias="planId", description="Internal plan ID")
    billing_interval: Optional[str] = Field(None, alias="billingInterval", description="'month' or 'year'")
    success_url: Optional[str] = Field(None, alias="successUrl")
    cancel_url: Optional[str] = Field(None, alias="cancelUrl")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "priceId": "price_pro_month",
                "planId": "pro",
                "billingInterval": "month",
            }
        },
    )


class CheckoutSessionOut(CamelModel):
    url: str = Field(..., description="Stripe checkout session URL")
    session_id: str = Field(..., alias="sessionId", description="Stripe checkout session ID")


class CreateCheckoutSessionResponse(BaseModel):
    success: bool = True
    data: CheckoutSessionOut


class CreatePortalSessionRequest(BaseModel):
    """Request schema for creating portal session."""
    flow_type: Optional[str] = Field(
        None,
        description="subscription_update | subscription_cancel | payment_method_update | subscription_update_confirm",
    )
    return_url: Optional[str] = Field(None, description="URL to return to after portal session")
    configuration_id: Optional[str] = Field(None, description="Stripe portal configuration ID")
    price_id: Optional[str] = Field(None, description="Target price for subscription_update_confirm")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "flow_type": "subscription_update",
                "return_url": "http://localhost:3000/settings/billing",
            }
        }
    )


class PortalSessionData(BaseModel):
    url: str = Field(..., description="Stripe customer portal URL")
    created: Optional[int] = None
    expires_at: Optional[int] = None
    flow_type: Optional[str] = None
    return_url: str


class CreatePortalSessionResponse(BaseModel):
    success: bool = True
    data: PortalSessionData


class BillingResponse(BaseModel):
    """Generic envelope used by the read endpoints."""
    success: bool = True
    data: Any = None


class PlanOut(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    monthly_price: float = Field(..., alias="monthlyPrice")
    yearly_price: float = Field(..., alias="yearlyPrice")
    currency: str
    stripe_monthly_price_id: Optional[str] = Field(None, alias="stripeMonthlyPriceId")
    stripe_yearly_price_id: Optional[str] = Field(None, alias="stripeYearlyPriceId")
    stripe_product_id: Optional[str] = Field(None, alias="stripeProductId")
    yearly_savings: float = Field(..., alias="yearlySavings")


class PlanListData(CamelModel):
    plans: List[PlanOut]
    count: int
    publishable_key: Optional[str] = Field(None, alias="publishableKey", description="Stripe publishable key for the client")


class PlanListResponse(BaseModel):
    success: bool = True
    data: PlanListData


class BillingErrorResponse(BaseModel):
    """Error response schema for billing operations."""
    detail: str = Field(..., description="Error message")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "detail": "No Stripe customer found - complete subscription setup first"
            }
        }
    )


def subscription_to_dict(subscription) -> Dict[str, Any]:
    """Serialize a UserSubscription row with the camelCase keys the frontend reads."""
    def _iso(value):
        return value.isoformat() if value else None

    return {
        "userId": subscription.user_id,
        "planId": subscription.plan_id,
        "stripeSubscriptionId": subscription.stripe_subscription_id,
        "stripeCustomerId": subscription.stripe_customer_id,
        "status": subscription.status,
        "currentPeriodStart": _iso(subscription.current_period_start),
        "currentPeriodEnd": _iso(subscription.current_period_end),
        "cancelAtPeriodEnd": bool(subscription.cancel_at_period_end),
        "billingInterval": subscription.billing_interval,
        "trialStart": _iso(subscription.trial_start),
        "trialEnd": _iso(subscription.trial_end),
    }
