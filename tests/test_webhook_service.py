"""
Tests for webhook verification and event interpretation
"""
from datetime import timedelta
from unittest.mock import patch

import pytest

from models.entitlement import EventKind, OtherFields, SubscriptionActiveFields
from services.errors import AuthError, MalformedEvent
from services.webhook_service import Webhook, classify, decode_event, interpret
from tests.conftest import NOW, TEST_WEBHOOK_SECRET, sign_payload, webhook_payload


def test_classify_known_and_unknown_types():
    assert classify("payment.succeeded") is EventKind.PAYMENT_SUCCEEDED
    assert classify("subscription.active") is EventKind.SUBSCRIPTION_ACTIVE
    assert classify("subscription.renewed") is EventKind.SUBSCRIPTION_RENEWED
    assert classify("subscription.cancelled") is EventKind.SUBSCRIPTION_CANCELLED
    assert classify("dispute.opened") is EventKind.OTHER
    assert classify(None) is EventKind.OTHER


def test_interpret_verified_subscription_event():
    next_billing = NOW + timedelta(days=30)
    body, headers = sign_payload(webhook_payload(
        "subscription.active", email="a@x.com",
        next_billing_date=next_billing.isoformat(), product_id="pdt_test",
    ))

    event = interpret(body, headers, TEST_WEBHOOK_SECRET)

    assert event.kind is EventKind.SUBSCRIPTION_ACTIVE
    assert event.identity == "a@x.com"
    assert event.timestamp == NOW
    assert isinstance(event.fields, SubscriptionActiveFields)
    assert event.fields.next_billing_date == next_billing
    assert event.fields.product_id == "pdt_test"


def test_missing_secret_is_auth_error():
    body, headers = sign_payload(webhook_payload("payment.succeeded", email="a@x.com"))
    with pytest.raises(AuthError):
        interpret(body, headers, None)


def test_bad_signature_is_auth_error():
    body, headers = sign_payload(webhook_payload("payment.succeeded", email="a@x.com"))
    tampered = body.replace("a@x.com", "b@x.com")
    with pytest.raises(AuthError):
        interpret(tampered, headers, TEST_WEBHOOK_SECRET)


def test_missing_signature_headers_is_auth_error():
    body, _ = sign_payload(webhook_payload("payment.succeeded", email="a@x.com"))
    with pytest.raises(AuthError):
        interpret(body, {}, TEST_WEBHOOK_SECRET)


def test_missing_email_is_malformed():
    body, headers = sign_payload(webhook_payload("payment.succeeded"))
    with pytest.raises(MalformedEvent):
        interpret(body, headers, TEST_WEBHOOK_SECRET)


def test_unknown_type_is_other():
    event = decode_event(webhook_payload("refund.succeeded", email="a@x.com"))
    assert event.kind is EventKind.OTHER
    assert isinstance(event.fields, OtherFields)
    assert event.fields.event_type == "refund.succeeded"


def test_subscription_without_next_billing_date_is_other():
    event = decode_event(webhook_payload("subscription.renewed", email="a@x.com"))
    assert event.kind is EventKind.OTHER


def test_missing_timestamp_falls_back_to_now():
    payload = webhook_payload("payment.succeeded", email="a@x.com")
    del payload["timestamp"]
    assert decode_event(payload, NOW + timedelta(minutes=5)).timestamp == NOW + timedelta(minutes=5)


def test_interpret_does_not_depend_on_verify_return_value():
    """svix 2.x returns None from verify; the body is decoded independently."""
    body, headers = sign_payload(webhook_payload("payment.succeeded", email="a@x.com"))

    with patch.object(Webhook, "verify", return_value=None) as verify:
        event = interpret(body, headers, TEST_WEBHOOK_SECRET)

    verify.assert_called_once()
    assert event.kind is EventKind.PAYMENT_SUCCEEDED
    assert event.identity == "a@x.com"


def test_verified_body_that_is_not_an_object_is_auth_error():
    body, headers = sign_payload(["not", "an", "object"])
    with pytest.raises(AuthError):
        interpret(body, headers, TEST_WEBHOOK_SECRET)


def test_timestamp_accepts_zulu_and_long_fractions():
    payload = webhook_payload("payment.succeeded", email="a@x.com")

    payload["timestamp"] = "2026-03-01T12:00:00Z"
    assert decode_event(payload).timestamp == NOW

    payload["timestamp"] = "2026-03-01T12:00:00.123456789Z"
    assert decode_event(payload).timestamp == NOW + timedelta(microseconds=123456)


def test_unparseable_timestamp_falls_back_to_now():
    payload = webhook_payload("payment.succeeded", email="a@x.com")
    payload["timestamp"] = "yesterday-ish"
    assert decode_event(payload, NOW + timedelta(minutes=1)).timestamp == NOW + timedelta(minutes=1)


def test_naive_timestamp_is_utc():
    payload = webhook_payload("payment.succeeded", email="a@x.com")
    payload["timestamp"] = "2026-03-01T12:00:00"
    assert decode_event(payload).timestamp == NOW
