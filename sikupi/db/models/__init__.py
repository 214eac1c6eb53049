"""Re-export all models so Base.metadata sees them."""

from sikupi.db.models.order import Order, OrderItem
from sikupi.db.models.product import Product

__all__ = [
    "Order",
    "OrderItem",
    "Product",
]
