"""
Entitlement models: the persisted per-user record and the ephemeral values
derived from it (billing events and access decisions).
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class SubscriptionState(_CamelModel):
    status: SubscriptionStatus
    next_billing_date: datetime
    product_id: str
    started_at: datetime


class EntitlementRecord(_CamelModel):
    """
    Durable per-user payment/trial state, keyed by email.

    ``trial_started`` is set once and never cleared. ``last_subscription_event_at``
    is the timestamp of the newest subscription event applied, used to drop
    events delivered out of order.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    has_paid: bool = False
    trial_started: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    subscription: Optional[SubscriptionState] = None
    last_subscription_event_at: Optional[datetime] = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: Union[str, bytes]) -> "EntitlementRecord":
        return cls.model_validate_json(raw)


# ---------------------------------------------------------------------------
# Billing events
# ---------------------------------------------------------------------------

class EventKind(str, Enum):
    PAYMENT_SUCCEEDED = "payment.succeeded"
    SUBSCRIPTION_ACTIVE = "subscription.active"
    SUBSCRIPTION_RENEWED = "subscription.renewed"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    OTHER = "other"


class PaymentSucceededFields(BaseModel):
    pass


class SubscriptionActiveFields(BaseModel):
    next_billing_date: datetime
    product_id: str = ""


class SubscriptionCancelledFields(BaseModel):
    pass


class OtherFields(BaseModel):
    event_type: str


EventFields = Union[PaymentSucceededFields, SubscriptionActiveFields, SubscriptionCancelledFields, OtherFields]


class BillingEvent(BaseModel):
    """One interpreted webhook delivery. Never persisted."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    identity: str
    timestamp: datetime
    fields: EventFields


# ---------------------------------------------------------------------------
# Access decisions
# ---------------------------------------------------------------------------

class AccessKind(str, Enum):
    NONE = "none"
    TRIAL = "trial"
    PAID = "paid"


class AccessDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: AccessKind
    expires_at: Optional[datetime] = None

    @property
    def has_access(self) -> bool:
        return self.kind is not AccessKind.NONE


class CheckAccessRequest(BaseModel):
    email: Optional[str] = None


class CheckAccessResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    has_access: bool
    type: str
    expires_at: Optional[str] = Field(default=None)
