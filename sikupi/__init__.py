"""Sikupi marketplace webhook reconciliation service."""
