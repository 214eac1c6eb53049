"""Midtrans payment notifications: validation, signature check, status mapping."""

import hashlib
import hmac
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sikupi.core.exceptions import WebhookPayloadError
from sikupi.orders.store import OrderTransition
from sikupi.webhooks.ledger import WebhookSource
from sikupi.webhooks.processor import WebhookEvent

PAID = "paid"
PENDING_PAYMENT = "pending_payment"
CANCELLED = "cancelled"
NEW = "new"

_PAID_STATUSES = {"capture", "settlement"}
_CANCELLED_STATUSES = {"deny", "cancel", "expire", "failure"}
_FRAUD_REJECTED = {"challenge", "deny"}


class MidtransNotification(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    transaction_time: str = Field(min_length=1)
    transaction_status: str = Field(min_length=1)
    transaction_id: str = Field(min_length=1)
    status_code: str = Field(min_length=1)
    signature_key: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    gross_amount: str = Field(min_length=1)
    fraud_status: str | None = None
    payment_type: str | None = None


def parse_notification(data: Any) -> MidtransNotification:
    """Validate a raw notification body.

    Raises:
        WebhookPayloadError: A required field is missing or empty.
    """
    if not isinstance(data, dict):
        raise WebhookPayloadError(WebhookSource.PAYMENT.value, "body is not a JSON object")
    try:
        return MidtransNotification.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise WebhookPayloadError(WebhookSource.PAYMENT.value, f"invalid fields: {', '.join(fields)}") from e


def compute_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    payload = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(payload.encode("utf-8")).hexdigest()


def verify_signature(notification: MidtransNotification, server_key: str) -> bool:
    """Check signature_key = sha512(order_id + status_code + gross_amount + server_key)."""
    expected = compute_signature(
        notification.order_id,
        notification.status_code,
        notification.gross_amount,
        server_key,
    )
    return hmac.compare_digest(expected, notification.signature_key)


def map_transaction_status(transaction_status: str, fraud_status: str | None = None) -> str:
    """Map a Midtrans transaction status onto the marketplace order status."""
    if fraud_status in _FRAUD_REJECTED:
        return CANCELLED
    if transaction_status in _PAID_STATUSES:
        return PAID
    if transaction_status == "pending":
        return PENDING_PAYMENT
    if transaction_status in _CANCELLED_STATUSES:
        return CANCELLED
    return NEW


def to_transition(notification: MidtransNotification) -> OrderTransition:
    order_status = map_transaction_status(notification.transaction_status, notification.fraud_status)
    return OrderTransition(
        source=WebhookSource.PAYMENT,
        payment_status=notification.transaction_status,
        order_status=None if order_status == NEW else order_status,
        mark_paid=order_status == PAID,
    )


def event_status(notification: MidtransNotification) -> str:
    """Status component of the dedupe key.

    The fraud verdict is part of it: a card capture is first sent as
    capture/challenge and later as capture/accept, and those are two events.
    """
    if notification.fraud_status:
        return f"{notification.transaction_status}/{notification.fraud_status}"
    return notification.transaction_status


def to_event(notification: MidtransNotification) -> WebhookEvent:
    return WebhookEvent(
        source=WebhookSource.PAYMENT,
        external_order_id=notification.order_id,
        status=event_status(notification),
        transition=to_transition(notification),
    )
