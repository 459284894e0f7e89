"""
Webhook Service - authenticates and interprets inbound billing events.

Signature verification happens before anything in the body is trusted.
Provider event types are classified into the closed EventKind set; unknown
types become EventKind.OTHER so new provider events never fail the webhook.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from svix.webhooks import Webhook, WebhookVerificationError

from models.entitlement import (
    BillingEvent,
    EventKind,
    OtherFields,
    PaymentSucceededFields,
    SubscriptionActiveFields,
    SubscriptionCancelledFields,
)
from services.errors import AuthError, MalformedEvent

logger = logging.getLogger(__name__)

EVENT_KINDS = {
    "payment.succeeded": EventKind.PAYMENT_SUCCEEDED,
    "subscription.active": EventKind.SUBSCRIPTION_ACTIVE,
    "subscription.renewed": EventKind.SUBSCRIPTION_RENEWED,
    "subscription.cancelled": EventKind.SUBSCRIPTION_CANCELLED,
}

_DATETIME = TypeAdapter(datetime)


def classify(event_type: Optional[str]) -> EventKind:
    return EVENT_KINDS.get(event_type or "", EventKind.OTHER)


def verify_payload(raw_body: Union[str, bytes], headers: Mapping[str, str], secret: Optional[str]) -> Dict[str, Any]:
    """
    Verify a Standard Webhooks signature, then decode the body.

    ``Webhook.verify`` is only used as a check: it raises on a bad
    signature, and its return value differs across svix releases.

    Raises:
        AuthError: secret not configured, the signature does not verify,
            or the verified body is not a JSON object
    """
    if not secret:
        logger.error("Webhook secret not configured")
        raise AuthError("Webhook secret not configured.")

    try:
        Webhook(secret).verify(raw_body, dict(headers))
    except WebhookVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise AuthError("Invalid webhook signature") from e

    try:
        payload = json.loads(raw_body)
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise AuthError("Invalid webhook payload") from e

    if not isinstance(payload, dict):
        raise AuthError("Invalid webhook payload")
    return payload


def _parse_timestamp(value: Any, now: datetime) -> datetime:
    if value is None:
        return now
    try:
        parsed = _DATETIME.validate_python(value)
    except PydanticValidationError:
        return now
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _extract_email(data: Dict[str, Any]) -> Optional[str]:
    customer = data.get("customer")
    if isinstance(customer, dict):
        email = customer.get("email")
        if isinstance(email, str) and email.strip():
            return email.strip()
    return None


def decode_event(payload: Dict[str, Any], now: Optional[datetime] = None) -> BillingEvent:
    """
    Decode a verified payload into a BillingEvent.

    Raises:
        MalformedEvent: no customer email in the payload
    """
    now = now or datetime.now(timezone.utc)
    event_type = payload.get("type")
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}

    email = _extract_email(data)
    if not email:
        logger.warning(f"No email found in webhook payload (type={event_type})")
        raise MalformedEvent("no email")

    kind = classify(event_type)
    timestamp = _parse_timestamp(payload.get("timestamp"), now)

    if kind is EventKind.PAYMENT_SUCCEEDED:
        fields = PaymentSucceededFields()
    elif kind in (EventKind.SUBSCRIPTION_ACTIVE, EventKind.SUBSCRIPTION_RENEWED):
        try:
            fields = SubscriptionActiveFields(
                next_billing_date=data.get("next_billing_date"),
                product_id=data.get("product_id") or "",
            )
        except PydanticValidationError:
            logger.warning(f"{event_type} for {email} has no usable next_billing_date, ignoring")
            kind = EventKind.OTHER
            fields = OtherFields(event_type=str(event_type))
        else:
            if fields.next_billing_date.tzinfo is None:
                fields = fields.model_copy(
                    update={"next_billing_date": fields.next_billing_date.replace(tzinfo=timezone.utc)}
                )
    elif kind is EventKind.SUBSCRIPTION_CANCELLED:
        fields = SubscriptionCancelledFields()
    else:
        fields = OtherFields(event_type=str(event_type))

    return BillingEvent(kind=kind, identity=email, timestamp=timestamp, fields=fields)


def interpret(
    raw_body: Union[str, bytes],
    headers: Mapping[str, str],
    secret: Optional[str],
    now: Optional[datetime] = None,
) -> BillingEvent:
    """
    Authenticate and interpret one webhook delivery.

    Raises:
        AuthError: verification failed (answer 400)
        MalformedEvent: verified but no identity (answer 200 with a warning)
    """
    payload = verify_payload(raw_body, headers, secret)
    logger.info(f"Webhook verified, event: {payload.get('type')}")
    return decode_event(payload, now)
