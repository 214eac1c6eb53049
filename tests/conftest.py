"""Shared test fixtures for all test groups."""

import os
from datetime import UTC, datetime, timedelta

# Settings are cached on first use; fix the provider secrets before any app import.
os.environ.setdefault("MIDTRANS_SERVER_KEY", "SB-Mid-server-test-key")
os.environ.setdefault("MIDTRANS_VERIFY_SIGNATURE", "true")
os.environ.setdefault("BITESHIP_WEBHOOK_SECRET", "")

import pytest

from sikupi.orders.store_fake import InMemoryOrderStore
from sikupi.webhooks.ledger import IdempotencyLedger


class FakeClock:
    """Manually advanced UTC clock for retention-window tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Fresh FakeClock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def ledger(clock):
    """IdempotencyLedger with the default 24h retention and a fake clock."""
    return IdempotencyLedger(clock=clock)


@pytest.fixture
def order_store():
    """InMemoryOrderStore with happy_path scenario (default)."""
    return InMemoryOrderStore(scenario="happy_path")
