"""FastAPI dependencies exposing the app-owned ledger and order store."""

from fastapi import Depends, Request

from sikupi.orders.store import OrderStore
from sikupi.webhooks.ledger import IdempotencyLedger
from sikupi.webhooks.processor import WebhookProcessor


def get_ledger(request: Request) -> IdempotencyLedger:
    return request.app.state.ledger


def get_order_store(request: Request) -> OrderStore:
    return request.app.state.order_store


def get_webhook_processor(
    ledger: IdempotencyLedger = Depends(get_ledger),
    order_store: OrderStore = Depends(get_order_store),
) -> WebhookProcessor:
    return WebhookProcessor(ledger, order_store)
