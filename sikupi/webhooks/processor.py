"""WebhookProcessor: applies a provider event to the order store at most once.

Flow for one delivery:
    key = derive_key(source, external_order_id, status)
    try_acquire(key) -> False: duplicate, acknowledge without touching orders
                     -> True:  apply_transition, then mark_processed
    apply_transition raises -> release(key) and re-raise so the provider's
                               retry can claim the key again
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from sikupi.orders.store import OrderStore, OrderTransition
from sikupi.webhooks.ledger import IdempotencyLedger, WebhookSource, derive_key

logger = structlog.get_logger(__name__)


class ProcessOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class WebhookEvent:
    """A validated provider callback, reduced to what deduplication needs."""

    source: WebhookSource
    external_order_id: str
    status: str
    transition: OrderTransition

    @property
    def key(self) -> str:
        return derive_key(self.source, self.external_order_id, self.status)


class WebhookProcessor:
    """Couples the idempotency ledger with the order store."""

    def __init__(self, ledger: IdempotencyLedger, order_store: OrderStore) -> None:
        self.ledger = ledger
        self.order_store = order_store

    async def process(self, event: WebhookEvent) -> ProcessOutcome:
        """Apply event unless its key is already claimed.

        Raises:
            OrderStoreError: The transition could not be persisted. The key
                has been released before the exception propagates.
        """
        key = event.key
        log = logger.bind(idempotency_key=key, source=event.source.value)

        if not self.ledger.try_acquire(key):
            log.info("webhook_duplicate_ignored")
            return ProcessOutcome.DUPLICATE

        try:
            await self.order_store.apply_transition(event.external_order_id, event.transition)
        except BaseException as exc:
            self.ledger.release(key)
            log.warning("webhook_claim_released", error=str(exc), error_type=type(exc).__name__)
            raise

        self.ledger.mark_processed(key)
        log.info("webhook_processed")
        return ProcessOutcome.APPLIED
