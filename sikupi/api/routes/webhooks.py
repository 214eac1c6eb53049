"""Provider webhook routes — Midtrans payments and Biteship shipments.

Providers retry until they see a 2xx, so duplicates are acknowledged with 200.
Failure statuses are reserved for events that could not be handled safely:
400 malformed payload, 401 bad signature, 404 unknown order, 500 store failure.
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from sikupi.api.dependencies import get_ledger, get_webhook_processor
from sikupi.core.config import get_settings
from sikupi.core.exceptions import OrderNotFoundError, OrderStoreError, WebhookPayloadError
from sikupi.providers import biteship, midtrans
from sikupi.webhooks.ledger import IdempotencyLedger, WebhookSource
from sikupi.webhooks.processor import ProcessOutcome, WebhookEvent, WebhookProcessor

logger = structlog.get_logger(__name__)

router = APIRouter()


# ── Response schemas ────────────────────────────────────────────────


class WebhookAck(BaseModel):
    status: str = "ok"
    duplicate: bool
    key: str


class LedgerEntryResponse(BaseModel):
    key: str
    processed: bool
    age_minutes: int


class LedgerStatsResponse(BaseModel):
    total_entries: int
    retention_seconds: int
    entries: list[LedgerEntryResponse]


# ── Helpers ─────────────────────────────────────────────────────────


def _decode_json(body: bytes, source: WebhookSource) -> Any:
    try:
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("webhook_body_not_json", source=source.value)
        raise HTTPException(status_code=400, detail="Invalid payload")


async def _dispatch(processor: WebhookProcessor, event: WebhookEvent) -> WebhookAck:
    """Run the event through the processor and map failures to HTTP statuses."""
    try:
        outcome = await processor.process(event)
    except OrderNotFoundError:
        logger.error("webhook_order_not_found", source=event.source.value, external_order_id=event.external_order_id)
        raise HTTPException(status_code=404, detail="Order not found")
    except OrderStoreError:
        logger.error("webhook_order_update_failed", source=event.source.value, external_order_id=event.external_order_id)
        raise HTTPException(status_code=500, detail="Failed to update order")

    return WebhookAck(duplicate=outcome is ProcessOutcome.DUPLICATE, key=event.key)


# ── Endpoints ───────────────────────────────────────────────────────


@router.post("/midtrans", response_model=WebhookAck)
async def midtrans_webhook(
    request: Request,
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """Handle Midtrans payment notifications with signature verification."""
    settings = get_settings()
    data = _decode_json(await request.body(), WebhookSource.PAYMENT)

    try:
        notification = midtrans.parse_notification(data)
    except WebhookPayloadError as e:
        logger.warning("midtrans_invalid_payload", reason=e.reason)
        raise HTTPException(status_code=400, detail="Invalid payload")

    if settings.midtrans_verify_signature:
        if not settings.midtrans_server_key:
            logger.error("midtrans_server_key_missing")
            raise HTTPException(status_code=503, detail="Midtrans webhook endpoint is not configured")
        if not midtrans.verify_signature(notification, settings.midtrans_server_key):
            logger.warning("midtrans_invalid_signature", order_id=notification.order_id)
            raise HTTPException(status_code=401, detail="Invalid signature")

    logger.info(
        "midtrans_notification_received",
        order_id=notification.order_id,
        transaction_status=notification.transaction_status,
        fraud_status=notification.fraud_status,
    )
    return await _dispatch(processor, midtrans.to_event(notification))


@router.post("/biteship", response_model=WebhookAck)
async def biteship_webhook(
    request: Request,
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """Handle Biteship shipment status callbacks."""
    settings = get_settings()
    body = await request.body()
    data = _decode_json(body, WebhookSource.SHIPPING)

    try:
        payload = biteship.parse_payload(data)
    except WebhookPayloadError as e:
        logger.warning("biteship_invalid_payload", reason=e.reason)
        raise HTTPException(status_code=400, detail="Invalid payload")

    if settings.biteship_webhook_secret:
        signature = request.headers.get("x-biteship-signature", "")
        if not biteship.verify_signature(body, signature, settings.biteship_webhook_secret):
            logger.warning("biteship_invalid_signature", order_id=payload.order_id)
            raise HTTPException(status_code=401, detail="Invalid signature")

    logger.info(
        "biteship_webhook_received",
        order_id=payload.order_id,
        status=payload.status,
        waybill_id=payload.waybill_id,
    )
    if payload.history:
        latest = payload.history[0]
        logger.info("biteship_latest_history", order_id=payload.order_id, status=latest.status, note=latest.note)

    return await _dispatch(processor, biteship.to_event(payload))


@router.get("/idempotency/stats", response_model=LedgerStatsResponse)
async def idempotency_stats(ledger: IdempotencyLedger = Depends(get_ledger)):
    """Diagnostic snapshot of the idempotency ledger.

    Lists order ids, so it is only served in debug mode, like /docs.
    """
    if not get_settings().debug:
        raise HTTPException(status_code=404, detail="Not Found")

    stats = ledger.stats()
    return LedgerStatsResponse(
        total_entries=stats.total_entries,
        retention_seconds=int(ledger.retention.total_seconds()),
        entries=[
            LedgerEntryResponse(
                key=entry.key,
                processed=entry.processed,
                age_minutes=round(entry.age_seconds / 60),
            )
            for entry in stats.entries
        ],
    )
