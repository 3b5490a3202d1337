# signfast/billing/schemas.py

"""
Billing request/response models and the Stripe webhook event union.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class PlanType(str, Enum):
    FREE = "free"
    METERED = "metered"
    UNLIMITED = "unlimited"


PAID_PLANS = {PlanType.METERED.value, PlanType.UNLIMITED.value}


class UsageRecordResult(BaseModel):
    usage_recorded: bool
    billed: bool = False
    source: Optional[str] = None
    message: str = ""


class UsageStatsResponse(BaseModel):
    free_signatures_remaining: int
    plan_type: str
    subscription_status: Optional[str] = None
    current_month_usage: int
    current_month_billed: int
    total_usage: int
    can_send_requests: bool


class PlanChangeRequest(BaseModel):
    plan_type: str


class PlanChangeResponse(BaseModel):
    checkout_url: str
    session_id: str


class PortalSessionResponse(BaseModel):
    url: str


# --- Webhook events ---

def _object_id(value: Any) -> Optional[str]:
    """Stripe sends related objects either as an id or expanded."""
    if isinstance(value, dict):
        return value.get("id")
    return value


class _StripeObject(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SubscriptionObject(_StripeObject):
    id: str
    customer: Optional[str] = None
    status: Optional[str] = None
    items: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("customer", mode="before")
    @classmethod
    def normalize_customer(cls, value):
        return _object_id(value)

    @property
    def price_id(self) -> Optional[str]:
        data: List[Dict[str, Any]] = self.items.get("data") or []
        if not data:
            return None
        return (data[0].get("price") or {}).get("id")


class InvoiceObject(_StripeObject):
    id: Optional[str] = None
    customer: Optional[str] = None

    @field_validator("customer", mode="before")
    @classmethod
    def normalize_customer(cls, value):
        return _object_id(value)


class CheckoutSessionObject(_StripeObject):
    id: Optional[str] = None
    customer: Optional[str] = None
    subscription: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    @field_validator("customer", "subscription", mode="before")
    @classmethod
    def normalize_refs(cls, value):
        return _object_id(value)


class _SubscriptionData(_StripeObject):
    object: SubscriptionObject


class _InvoiceData(_StripeObject):
    object: InvoiceObject


class _CheckoutData(_StripeObject):
    object: CheckoutSessionObject


class SubscriptionCreatedEvent(_StripeObject):
    type: Literal["customer.subscription.created"]
    data: _SubscriptionData


class SubscriptionUpdatedEvent(_StripeObject):
    type: Literal["customer.subscription.updated"]
    data: _SubscriptionData


class SubscriptionDeletedEvent(_StripeObject):
    type: Literal["customer.subscription.deleted"]
    data: _SubscriptionData


class InvoicePaidEvent(_StripeObject):
    type: Literal["invoice.paid"]
    data: _InvoiceData


class InvoicePaymentFailedEvent(_StripeObject):
    type: Literal["invoice.payment_failed"]
    data: _InvoiceData


class CheckoutSessionCompletedEvent(_StripeObject):
    type: Literal["checkout.session.completed"]
    data: _CheckoutData


BillingEvent = Annotated[
    Union[
        SubscriptionCreatedEvent,
        SubscriptionUpdatedEvent,
        SubscriptionDeletedEvent,
        InvoicePaidEvent,
        InvoicePaymentFailedEvent,
        CheckoutSessionCompletedEvent,
    ],
    Field(discriminator="type"),
]

billing_event_adapter = TypeAdapter(BillingEvent)

HANDLED_EVENT_TYPES = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "invoice.paid",
    "invoice.payment_failed",
    "checkout.session.completed",
}
