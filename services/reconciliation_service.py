"""
Reconciliation - merges one BillingEvent into the user's EntitlementRecord.

Last-event-wins overlay with one guard: subscription events older than the
newest subscription event already applied are ignored, so a late
``renewed`` cannot resurrect a cancelled subscription.
"""

import logging
from typing import Optional

from models.entitlement import (
    BillingEvent,
    EntitlementRecord,
    EventKind,
    SubscriptionActiveFields,
    SubscriptionState,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)

SUBSCRIPTION_KINDS = (
    EventKind.SUBSCRIPTION_ACTIVE,
    EventKind.SUBSCRIPTION_RENEWED,
    EventKind.SUBSCRIPTION_CANCELLED,
)


def _is_stale(record: EntitlementRecord, event: BillingEvent) -> bool:
    if event.kind not in SUBSCRIPTION_KINDS:
        return False
    last = record.last_subscription_event_at
    return last is not None and event.timestamp < last


def reconcile(current: Optional[EntitlementRecord], event: BillingEvent) -> EntitlementRecord:
    record = current if current is not None else EntitlementRecord()

    if _is_stale(record, event):
        logger.info(f"Ignoring stale {event.kind.value} for {event.identity} ({event.timestamp.isoformat()})")
        return record

    if event.kind is EventKind.PAYMENT_SUCCEEDED:
        payment_date = event.timestamp
        if record.payment_date is not None and record.payment_date > payment_date:
            payment_date = record.payment_date
        logger.info(f"Payment succeeded for {event.identity}")
        return record.model_copy(update={"has_paid": True, "payment_date": payment_date})

    if event.kind in (EventKind.SUBSCRIPTION_ACTIVE, EventKind.SUBSCRIPTION_RENEWED):
        fields = event.fields
        if not isinstance(fields, SubscriptionActiveFields):
            return record
        subscription = SubscriptionState(
            status=SubscriptionStatus.ACTIVE,
            next_billing_date=fields.next_billing_date,
            product_id=fields.product_id,
            started_at=event.timestamp,
        )
        logger.info(f"Subscription {event.kind.value} for {event.identity}")
        return record.model_copy(update={
            "has_paid": True,
            "subscription": subscription,
            "last_subscription_event_at": event.timestamp,
        })

    if event.kind is EventKind.SUBSCRIPTION_CANCELLED:
        if record.subscription is None:
            logger.info(f"Cancellation for {event.identity} without a recorded subscription, ignoring")
            return record
        subscription = record.subscription.model_copy(update={"status": SubscriptionStatus.CANCELLED})
        logger.info(f"Marked subscription as cancelled for {event.identity}")
        return record.model_copy(update={
            "has_paid": False,
            "subscription": subscription,
            "last_subscription_event_at": event.timestamp,
        })

    # EventKind.OTHER
    return record
