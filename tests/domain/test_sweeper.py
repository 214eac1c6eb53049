"""Tests for the background idempotency sweeper."""

import asyncio

import pytest

from sikupi.webhooks.sweeper import LedgerSweeper

pytestmark = pytest.mark.unit


def test_negative_interval_rejected(ledger):
    with pytest.raises(ValueError):
        LedgerSweeper(ledger, interval_seconds=-1)


def test_zero_interval_disables_sweeper(ledger):
    assert LedgerSweeper(ledger, interval_seconds=0).enabled is False


async def test_sweep_once_evicts_expired(ledger, clock):
    ledger.mark_processed("midtrans:ORDER-1:settlement")
    ledger.mark_processed("midtrans:ORDER-2:settlement")
    clock.advance(hours=24, seconds=1)
    ledger.mark_processed("biteship:SHIP-1:confirmed")

    evicted = await LedgerSweeper(ledger, interval_seconds=60).sweep_once()

    assert evicted == 2
    assert len(ledger) == 1


async def test_disabled_run_returns_immediately(ledger):
    await asyncio.wait_for(LedgerSweeper(ledger, interval_seconds=0).run(), timeout=1)


async def test_run_sweeps_periodically_until_cancelled(ledger, clock):
    ledger.mark_processed("midtrans:ORDER-1:settlement")
    clock.advance(hours=25)

    task = asyncio.create_task(LedgerSweeper(ledger, interval_seconds=0.01).run())
    for _ in range(100):
        await asyncio.sleep(0.01)
        if len(ledger) == 0:
            break
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(ledger) == 0
