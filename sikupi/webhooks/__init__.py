"""Webhook deduplication: idempotency ledger, processor and expiry sweeper."""
