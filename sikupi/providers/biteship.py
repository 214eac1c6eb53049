"""Biteship shipping webhooks: validation, signature check, status mapping."""

import hashlib
import hmac
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sikupi.core.exceptions import WebhookPayloadError
from sikupi.orders.store import OrderTransition
from sikupi.webhooks.ledger import WebhookSource
from sikupi.webhooks.processor import WebhookEvent

# Reference ids are generated as SIKUPI-SHIP-<timestamp>-<random>-<order id>
_REFERENCE_ORDER_ID = re.compile(r"SIKUPI-SHIP-\d+-\d+-?(\d+)?$")

# biteship status -> (shipping_status, order_status)
STATUS_MAP: dict[str, tuple[str, str | None]] = {
    "confirmed": ("confirmed", "confirmed"),
    "picked_up": ("picked_up", "processing"),
    "on_process": ("in_transit", "shipped"),
    "in_transit": ("in_transit", "shipped"),
    "delivered": ("delivered", "delivered"),
    "cancelled": ("cancelled", "cancelled"),
    "returned": ("returned", "cancelled"),
}


class BiteshipHistoryEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: str | None = None
    note: str | None = None
    updated_at: str | None = None


class BiteshipWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    order_id: str = Field(min_length=1)
    status: str = Field(min_length=1)
    id: str | None = None
    waybill_id: str | None = None
    link: str | None = None
    courier: dict[str, Any] | None = None
    history: list[BiteshipHistoryEntry] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None
    updated_at: str | None = None


def parse_payload(data: Any) -> BiteshipWebhookPayload:
    """Validate a raw webhook body.

    Raises:
        WebhookPayloadError: order_id or status is missing or empty.
    """
    if not isinstance(data, dict):
        raise WebhookPayloadError(WebhookSource.SHIPPING.value, "body is not a JSON object")
    try:
        return BiteshipWebhookPayload.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise WebhookPayloadError(WebhookSource.SHIPPING.value, f"invalid fields: {', '.join(fields)}") from e


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """HMAC-SHA256 hex digest of the raw body."""
    if not signature or not secret:
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def map_shipping_status(status: str) -> tuple[str, str | None]:
    return STATUS_MAP.get(status.lower(), ("pending", None))


def resolve_internal_order_id(payload: BiteshipWebhookPayload) -> int | None:
    """Find the marketplace order id in metadata, else in the reference suffix."""
    if payload.metadata and payload.metadata.get("sikupi_order_id") is not None:
        try:
            return int(payload.metadata["sikupi_order_id"])
        except (TypeError, ValueError):
            return None

    match = _REFERENCE_ORDER_ID.search(payload.order_id)
    if match and match.group(1):
        return int(match.group(1))
    return None


def to_transition(payload: BiteshipWebhookPayload) -> OrderTransition:
    shipping_status, order_status = map_shipping_status(payload.status)
    delivered = payload.status.lower() == "delivered"
    return OrderTransition(
        source=WebhookSource.SHIPPING,
        shipping_status=shipping_status,
        order_status="completed" if delivered else order_status,
        tracking_number=payload.waybill_id or None,
        mark_delivered=delivered,
        internal_order_id=resolve_internal_order_id(payload),
    )


def to_event(payload: BiteshipWebhookPayload) -> WebhookEvent:
    return WebhookEvent(
        source=WebhookSource.SHIPPING,
        external_order_id=payload.order_id,
        status=payload.status.lower(),
        transition=to_transition(payload),
    )
