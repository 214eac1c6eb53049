"""Idempotency ledger: at-most-once order transitions for retried webhooks.

Payment and shipping providers deliver callbacks at-least-once. The ledger
remembers which (source, order, status) events have been claimed so the
handler applies each order-state transition once per retention window.

This module provides:
- Deterministic key derivation ("<source>:<external_order_id>:<status>")
- Atomic test-and-set claims (try_acquire) with explicit release
- Lazy expiry on read plus an optional bulk sweep (cleanup_expired)
- A diagnostic snapshot (stats)

Entries are process-local memory. A restart forgets every key, so duplicate
suppression only holds within one process's uptime and the retention window.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum

import structlog

from sikupi.core.exceptions import LedgerConfigError

logger = structlog.get_logger(__name__)

KEY_SEPARATOR = ":"
DEFAULT_RETENTION = timedelta(hours=24)


class WebhookSource(str, Enum):
    """Provider that delivered a callback."""

    PAYMENT = "midtrans"
    SHIPPING = "biteship"


@dataclass
class IdempotencyEntry:
    processed: bool
    recorded_at: datetime


@dataclass(frozen=True)
class EntrySnapshot:
    key: str
    processed: bool
    age_seconds: float


@dataclass(frozen=True)
class LedgerStats:
    total_entries: int
    entries: list[EntrySnapshot] = field(default_factory=list)


def derive_key(source: WebhookSource | str, external_order_id: str, status: str) -> str:
    """Build the idempotency key for a provider event.

    Never raises. Empty or odd values still yield a key; they just won't
    match any well-formed event.
    """
    source_value = source.value if isinstance(source, WebhookSource) else str(source)
    return KEY_SEPARATOR.join((source_value, str(external_order_id), str(status)))


def _utcnow() -> datetime:
    return datetime.now(UTC)


class IdempotencyLedger:
    """In-memory idempotency ledger with a fixed retention window.

    One instance is owned by the application (``app.state.ledger``) and
    injected into request handlers; tests build their own instances.

    All reads and writes go through a single lock, so ``try_acquire`` is a
    true test-and-set for callers on any thread or event loop. No method
    blocks on I/O.
    """

    def __init__(
        self,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if retention <= timedelta(0):
            raise LedgerConfigError(f"Retention window must be positive, got {retention}")
        self.retention = retention
        self._clock = clock
        self._entries: dict[str, IdempotencyEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_expired(self, entry: IdempotencyEntry, now: datetime) -> bool:
        return now - entry.recorded_at >= self.retention

    def _live_entry(self, key: str, now: datetime) -> IdempotencyEntry | None:
        """Return the entry for key, evicting it first if it has expired.

        Caller must hold the lock.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, now):
            del self._entries[key]
            logger.debug("idempotency_entry_expired", key=key)
            return None
        return entry

    def is_processed(self, key: str) -> bool:
        """Return True if key was processed within the retention window.

        An expired entry is evicted before returning False. Diagnostic only:
        handlers must use try_acquire, since a check followed by a later
        mark_processed races with concurrent deliveries.
        """
        with self._lock:
            entry = self._live_entry(key, self._clock())
            return entry is not None and entry.processed

    def mark_processed(self, key: str) -> None:
        """Record key as processed now. Repeated calls refresh the timestamp."""
        with self._lock:
            self._entries[key] = IdempotencyEntry(processed=True, recorded_at=self._clock())

    def try_acquire(self, key: str) -> bool:
        """Atomically claim key.

        Returns:
            True for the single caller that claims a key with no live entry.
            False if the key is already in flight or processed.
        """
        with self._lock:
            now = self._clock()
            if self._live_entry(key, now) is not None:
                return False
            self._entries[key] = IdempotencyEntry(processed=False, recorded_at=now)
            return True

    def release(self, key: str) -> bool:
        """Drop the entry for key so a provider retry can claim it again.

        Returns:
            True if an entry was removed.
        """
        with self._lock:
            return self._entries.pop(key, None) is not None

    def cleanup_expired(self) -> int:
        """Evict every expired entry. Returns the number evicted."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def stats(self) -> LedgerStats:
        """Snapshot of the ledger contents at the time of the call."""
        with self._lock:
            now = self._clock()
            snapshots = [
                EntrySnapshot(
                    key=key,
                    processed=entry.processed,
                    age_seconds=(now - entry.recorded_at).total_seconds(),
                )
                for key, entry in self._entries.items()
            ]
        return LedgerStats(total_entries=len(snapshots), entries=snapshots)
