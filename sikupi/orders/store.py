"""OrderStore protocol: the narrow interface webhook processing depends on.

The store is a black box to the idempotency layer. Implementations signal
success by returning and failure by raising OrderStoreError (or its
OrderNotFoundError subclass). Applying the same transition twice must not
corrupt order totals or stock.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from sikupi.webhooks.ledger import WebhookSource


@dataclass(frozen=True)
class OrderTransition:
    """The order state a provider callback asks for.

    Fields left as None are not touched.
    """

    source: WebhookSource
    order_status: str | None = None
    payment_status: str | None = None
    shipping_status: str | None = None
    tracking_number: str | None = None
    mark_paid: bool = False
    mark_delivered: bool = False
    internal_order_id: int | None = None  # marketplace order id, when the provider echoes it


@runtime_checkable
class OrderStore(Protocol):
    """Protocol for persisting order-state transitions."""

    async def apply_transition(self, external_order_id: str, transition: OrderTransition) -> None:
        """Apply transition to the order identified by external_order_id.

        Raises:
            OrderNotFoundError: No order matches.
            OrderStoreError: The write failed.
        """
        ...
