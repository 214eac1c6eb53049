"""Order store: the system of record webhook transitions are applied to."""

from sikupi.orders.store import OrderStore, OrderTransition

__all__ = ["OrderStore", "OrderTransition"]
