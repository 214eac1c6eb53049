"""Payload adapters for the payment (Midtrans) and shipping (Biteship) providers."""
