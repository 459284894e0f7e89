"""
Unit tests for merging billing events into entitlement records
"""
from datetime import timedelta

from models.entitlement import (
    AccessKind,
    BillingEvent,
    EntitlementRecord,
    EventKind,
    OtherFields,
    PaymentSucceededFields,
    SubscriptionActiveFields,
    SubscriptionCancelledFields,
    SubscriptionState,
    SubscriptionStatus,
)
from services.access_service import evaluate
from services.reconciliation_service import reconcile
from tests.conftest import NOW

EMAIL = "a@x.com"


def _event(kind, fields, timestamp=NOW):
    return BillingEvent(kind=kind, identity=EMAIL, timestamp=timestamp, fields=fields)


def _active(timestamp=NOW, next_billing=NOW + timedelta(days=30), kind=EventKind.SUBSCRIPTION_ACTIVE):
    return _event(kind, SubscriptionActiveFields(next_billing_date=next_billing, product_id="pdt_test"), timestamp)


def _cancelled(timestamp=NOW):
    return _event(EventKind.SUBSCRIPTION_CANCELLED, SubscriptionCancelledFields(), timestamp)


def _paid_record():
    return EntitlementRecord(
        has_paid=True,
        trial_started=NOW - timedelta(days=5),
        subscription=SubscriptionState(
            status=SubscriptionStatus.ACTIVE,
            next_billing_date=NOW + timedelta(days=10),
            product_id="pdt_test",
            started_at=NOW - timedelta(days=20),
        ),
        last_subscription_event_at=NOW - timedelta(days=20),
    )


def test_payment_succeeded_on_new_user():
    record = reconcile(None, _event(EventKind.PAYMENT_SUCCEEDED, PaymentSucceededFields()))
    assert record.has_paid is True
    assert record.payment_date == NOW
    assert record.trial_started is None
    assert record.subscription is None


def test_payment_does_not_move_payment_date_backwards():
    current = EntitlementRecord(has_paid=True, payment_date=NOW)
    late = _event(EventKind.PAYMENT_SUCCEEDED, PaymentSucceededFields(), NOW - timedelta(days=1))
    assert reconcile(current, late).payment_date == NOW


def test_subscription_active_sets_paid_subscription():
    current = EntitlementRecord(trial_started=NOW - timedelta(hours=48))
    record = reconcile(current, _active())

    assert record.has_paid is True
    assert record.trial_started == current.trial_started
    assert record.subscription.status is SubscriptionStatus.ACTIVE
    assert record.subscription.next_billing_date == NOW + timedelta(days=30)
    assert record.subscription.product_id == "pdt_test"
    assert record.subscription.started_at == NOW
    assert record.last_subscription_event_at == NOW


def test_subscription_renewed_moves_next_billing_date():
    record = reconcile(_paid_record(), _active(next_billing=NOW + timedelta(days=40), kind=EventKind.SUBSCRIPTION_RENEWED))
    assert record.subscription.next_billing_date == NOW + timedelta(days=40)
    assert record.has_paid is True


def test_cancellation_revokes_paid_access():
    record = reconcile(_paid_record(), _cancelled())

    assert record.has_paid is False
    assert record.subscription.status is SubscriptionStatus.CANCELLED
    assert evaluate(record, NOW).kind is not AccessKind.PAID


def test_cancellation_without_subscription_is_noop():
    current = EntitlementRecord(trial_started=NOW)
    assert reconcile(current, _cancelled()) == current


def test_cancellation_for_new_user_yields_default_record():
    assert reconcile(None, _cancelled()) == EntitlementRecord()


def test_unknown_event_is_noop():
    current = _paid_record()
    other = _event(EventKind.OTHER, OtherFields(event_type="refund.succeeded"))
    assert reconcile(current, other) == current


def test_stale_renewal_does_not_resurrect_cancelled_subscription():
    cancelled = reconcile(_paid_record(), _cancelled(timestamp=NOW))
    late_renewal = _active(timestamp=NOW - timedelta(hours=1), kind=EventKind.SUBSCRIPTION_RENEWED)

    record = reconcile(cancelled, late_renewal)
    assert record == cancelled
    assert record.has_paid is False


def test_late_payment_does_not_restore_paid_access_after_cancellation():
    cancelled = reconcile(_paid_record(), _cancelled(timestamp=NOW))
    late_payment = _event(EventKind.PAYMENT_SUCCEEDED, PaymentSucceededFields(), NOW - timedelta(hours=1))

    record = reconcile(cancelled, late_payment)
    assert record.subscription.status is SubscriptionStatus.CANCELLED
    assert evaluate(record, NOW).kind is not AccessKind.PAID


def test_reconcile_does_not_mutate_input():
    current = _paid_record()
    reconcile(current, _cancelled())
    assert current.has_paid is True
    assert current.subscription.status is SubscriptionStatus.ACTIVE
