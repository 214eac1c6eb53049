"""Tests for Midtrans notification parsing, signatures and status mapping."""

import hashlib

import pytest

from sikupi.core.exceptions import WebhookPayloadError
from sikupi.providers.midtrans import (
    compute_signature,
    map_transaction_status,
    parse_notification,
    to_event,
    verify_signature,
)
from sikupi.webhooks.ledger import WebhookSource

pytestmark = pytest.mark.unit

SERVER_KEY = "SB-Mid-server-unit"


def _notification(**overrides) -> dict:
    data = {
        "transaction_time": "2026-01-01 12:00:00",
        "transaction_status": "settlement",
        "transaction_id": "txn-001",
        "status_code": "200",
        "order_id": "SIKUPI-ORDER-1",
        "gross_amount": "150000.00",
    }
    data["signature_key"] = compute_signature(
        data["order_id"], data["status_code"], data["gross_amount"], SERVER_KEY
    )
    data.update(overrides)
    return data


class TestParseNotification:
    def test_valid_notification(self):
        notification = parse_notification(_notification(fraud_status="accept"))

        assert notification.order_id == "SIKUPI-ORDER-1"
        assert notification.fraud_status == "accept"

    @pytest.mark.parametrize(
        "field",
        ["transaction_time", "transaction_status", "transaction_id", "status_code", "signature_key", "order_id", "gross_amount"],
    )
    def test_missing_required_field_rejected(self, field):
        data = _notification()
        del data[field]

        with pytest.raises(WebhookPayloadError) as exc_info:
            parse_notification(data)

        assert field in exc_info.value.reason

    def test_empty_required_field_rejected(self):
        with pytest.raises(WebhookPayloadError):
            parse_notification(_notification(order_id=""))

    def test_non_object_body_rejected(self):
        with pytest.raises(WebhookPayloadError):
            parse_notification(["not", "an", "object"])

    def test_numeric_amount_coerced_to_string(self):
        notification = parse_notification(_notification(gross_amount=150000, status_code=200))

        assert notification.gross_amount == "150000"
        assert notification.status_code == "200"


class TestSignature:
    def test_signature_is_sha512_of_concatenated_fields(self):
        expected = hashlib.sha512(b"SIKUPI-ORDER-1200150000.00" + SERVER_KEY.encode()).hexdigest()

        assert compute_signature("SIKUPI-ORDER-1", "200", "150000.00", SERVER_KEY) == expected

    def test_valid_signature(self):
        assert verify_signature(parse_notification(_notification()), SERVER_KEY) is True

    def test_wrong_server_key(self):
        assert verify_signature(parse_notification(_notification()), "other-key") is False

    def test_tampered_amount(self):
        notification = parse_notification(_notification(gross_amount="1.00"))

        assert verify_signature(notification, SERVER_KEY) is False


class TestStatusMapping:
    @pytest.mark.parametrize(
        ("transaction_status", "expected"),
        [
            ("capture", "paid"),
            ("settlement", "paid"),
            ("pending", "pending_payment"),
            ("deny", "cancelled"),
            ("cancel", "cancelled"),
            ("expire", "cancelled"),
            ("failure", "cancelled"),
            ("refund", "new"),
        ],
    )
    def test_transaction_status(self, transaction_status, expected):
        assert map_transaction_status(transaction_status) == expected

    @pytest.mark.parametrize("fraud_status", ["challenge", "deny"])
    def test_fraud_overrides_settlement(self, fraud_status):
        assert map_transaction_status("settlement", fraud_status) == "cancelled"

    def test_accepted_fraud_status_does_not_cancel(self):
        assert map_transaction_status("capture", "accept") == "paid"


class TestToEvent:
    def test_settlement_event(self):
        event = to_event(parse_notification(_notification()))

        assert event.source is WebhookSource.PAYMENT
        assert event.external_order_id == "SIKUPI-ORDER-1"
        assert event.key == "midtrans:SIKUPI-ORDER-1:settlement"
        assert event.transition.order_status == "paid"
        assert event.transition.payment_status == "settlement"
        assert event.transition.mark_paid is True

    def test_fraud_verdict_is_part_of_the_key(self):
        challenged = to_event(parse_notification(_notification(transaction_status="capture", fraud_status="challenge")))
        accepted = to_event(parse_notification(_notification(transaction_status="capture", fraud_status="accept")))

        assert challenged.key == "midtrans:SIKUPI-ORDER-1:capture/challenge"
        assert accepted.key == "midtrans:SIKUPI-ORDER-1:capture/accept"
        assert challenged.transition.order_status == "cancelled"
        assert accepted.transition.order_status == "paid"

    def test_unmapped_status_leaves_order_status_untouched(self):
        event = to_event(parse_notification(_notification(transaction_status="refund")))

        assert event.transition.order_status is None
        assert event.transition.payment_status == "refund"
        assert event.transition.mark_paid is False
