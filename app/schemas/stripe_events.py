"""
Typed views of the Stripe webhook events the billing engine consumes.

Stripe's JSON is an external contract, so every payload field is optional and
unknown fields are ignored. Events are a closed union discriminated on
``type``; anything outside it is acknowledged and skipped by the dispatcher.
"""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class StripePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def ref_id(ref: Any) -> Optional[str]:
    """Return the id of a Stripe reference that may be a bare id or an expanded object."""
    if not ref:
        return None
    if isinstance(ref, str):
        return ref
    if isinstance(ref, dict):
        return ref.get("id")
    return getattr(ref, "id", None)


class PriceRecurring(StripePayload):
    interval: Optional[str] = None
    interval_count: Optional[int] = None


class Price(StripePayload):
    id: Optional[str] = None
    product: Optional[Any] = None
    recurring: Optional[PriceRecurring] = None

    @property
    def product_id(self) -> Optional[str]:
        return ref_id(self.product)


class SubscriptionItem(StripePayload):
    id: Optional[str] = None
    price: Optional[Price] = None
    # Newer API versions report the billing period per item
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None


class SubscriptionItemList(StripePayload):
    data: Optional[List[SubscriptionItem]] = None


class SubscriptionSnapshot(StripePayload):
    """Full current state of a Stripe subscription."""
    id: Optional[str] = None
    customer: Optional[Any] = None
    status: Optional[str] = None
    items: Optional[SubscriptionItemList] = None
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: Optional[bool] = None
    trial_start: Optional[int] = None
    trial_end: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def customer_id(self) -> Optional[str]:
        return ref_id(self.customer)

    @property
    def first_item(self) -> Optional[SubscriptionItem]:
        if self.items and self.items.data:
            return self.items.data[0]
        return None

    @property
    def price(self) -> Optional[Price]:
        item = self.first_item
        return item.price if item else None

    @property
    def period_start(self) -> Optional[int]:
        if self.current_period_start is not None:
            return self.current_period_start
        item = self.first_item
        return item.current_period_start if item else None

    @property
    def period_end(self) -> Optional[int]:
        if self.current_period_end is not None:
            return self.current_period_end
        item = self.first_item
        return item.current_period_end if item else None


class CheckoutSession(StripePayload):
    id: Optional[str] = None
    mode: Optional[str] = None
    customer: Optional[Any] = None
    customer_email: Optional[str] = None
    subscription: Optional[Any] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def customer_id(self) -> Optional[str]:
        return ref_id(self.customer)


class Invoice(StripePayload):
    id: Optional[str] = None
    customer: Optional[Any] = None
    subscription: Optional[Any] = None
    status: Optional[str] = None
    amount_paid: Optional[int] = None
    amount_due: Optional[int] = None
    currency: Optional[str] = None
    attempt_count: Optional[int] = None

    @property
    def customer_id(self) -> Optional[str]:
        return ref_id(self.customer)

    @property
    def subscription_id(self) -> Optional[str]:
        return ref_id(self.subscription)


class CheckoutSessionData(StripePayload):
    object: Optional[CheckoutSession] = None


class SubscriptionData(StripePayload):
    object: Optional[SubscriptionSnapshot] = None


class InvoiceData(StripePayload):
    object: Optional[Invoice] = None


class EventEnvelope(StripePayload):
    id: Optional[str] = None
    created: Optional[int] = None
    livemode: Optional[bool] = None


class CheckoutSessionCompletedEvent(EventEnvelope):
    type: Literal["checkout.session.completed"]
    data: Optional[CheckoutSessionData] = None


class SubscriptionEvent(EventEnvelope):
    type: Literal[
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    ]
    data: Optional[SubscriptionData] = None


class InvoiceEvent(EventEnvelope):
    type: Literal[
        "invoice.payment_succeeded",
        "invoice.payment_failed",
    ]
    data: Optional[InvoiceData] = None


WebhookEvent = Annotated[
    Union[CheckoutSessionCompletedEvent, SubscriptionEvent, InvoiceEvent],
    Field(discriminator="type"),
]

_webhook_event_adapter = TypeAdapter(WebhookEvent)


def parse_webhook_event(envelope: Dict[str, Any]) -> WebhookEvent:
    """
    Parse a verified event envelope into its typed variant.

    Raises:
        pydantic.ValidationError: If the type is not handled or the payload shape is wrong
    """
    return _webhook_event_adapter.validate_python(envelope)
