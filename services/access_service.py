"""
Access evaluation - derives a point-in-time AccessDecision from a record.
Pure functions, no I/O.
"""
from datetime import datetime, timedelta
from typing import Optional

from models.entitlement import AccessDecision, AccessKind, EntitlementRecord, SubscriptionStatus

TRIAL_DURATION = timedelta(hours=24)


def trial_expires_at(record: EntitlementRecord, trial_duration: timedelta = TRIAL_DURATION) -> Optional[datetime]:
    if record.trial_started is None:
        return None
    return record.trial_started + trial_duration


def evaluate(
    record: Optional[EntitlementRecord],
    now: datetime,
    trial_duration: timedelta = TRIAL_DURATION,
) -> AccessDecision:
    """
    Decide access for ``record`` at ``now``. First match wins:

    1. paid and subscription active -> PAID until next billing date
    2. trial never started -> NONE
    3. inside the trial window -> TRIAL until trial end
    4. otherwise -> NONE (trial expired)
    """
    if record is None:
        return AccessDecision(kind=AccessKind.NONE)

    subscription = record.subscription
    if record.has_paid and subscription is not None and subscription.status is SubscriptionStatus.ACTIVE:
        return AccessDecision(kind=AccessKind.PAID, expires_at=subscription.next_billing_date)

    trial_end = trial_expires_at(record, trial_duration)
    if trial_end is None:
        return AccessDecision(kind=AccessKind.NONE)

    if now < trial_end:
        return AccessDecision(kind=AccessKind.TRIAL, expires_at=trial_end)

    return AccessDecision(kind=AccessKind.NONE)
