"""LedgerSweeper — periodic bulk eviction of expired idempotency entries.

Lazy eviction on read already keeps the ledger correct; the sweep only
bounds memory for keys that are never looked up again. Runs as an
asyncio.Task started by the application lifespan.
"""

import asyncio

import structlog

from sikupi.webhooks.ledger import IdempotencyLedger

logger = structlog.get_logger(__name__)


class LedgerSweeper:
    """Calls ledger.cleanup_expired() every interval_seconds.

    Usage:
        sweeper = LedgerSweeper(ledger, interval_seconds=300)
        task = asyncio.create_task(sweeper.run())
        ...
        task.cancel()
    """

    def __init__(self, ledger: IdempotencyLedger, interval_seconds: float) -> None:
        if interval_seconds < 0:
            raise ValueError(f"interval_seconds must be >= 0, got {interval_seconds}")
        self.ledger = ledger
        self.interval_seconds = interval_seconds

    @property
    def enabled(self) -> bool:
        return self.interval_seconds > 0

    async def sweep_once(self) -> int:
        evicted = self.ledger.cleanup_expired()
        if evicted:
            logger.info("idempotency_sweep_evicted", evicted=evicted, remaining=len(self.ledger))
        return evicted

    async def run(self) -> None:
        """Sweep forever until cancelled. Returns immediately when disabled."""
        if not self.enabled:
            logger.info("idempotency_sweeper_disabled")
            return

        logger.info("idempotency_sweeper_started", interval_seconds=self.interval_seconds)
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                await self.sweep_once()
        except asyncio.CancelledError:
            logger.info("idempotency_sweeper_stopped")
            raise
