class SikupiError(Exception):
    """Base exception for the Sikupi webhook service."""

    pass


class LedgerConfigError(SikupiError):
    """Raised when the idempotency ledger is constructed with invalid settings."""

    pass


class WebhookPayloadError(SikupiError):
    """Raised when a provider callback is missing required fields."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Malformed {source} webhook payload: {reason}")


class OrderStoreError(SikupiError):
    """Raised when an order-state transition could not be persisted."""

    pass


class OrderNotFoundError(OrderStoreError):
    """Raised when no order matches the identifier carried by a webhook."""

    def __init__(self, order_ref: str):
        self.order_ref = order_ref
        super().__init__(f"Order not found: {order_ref}")
