"""Order models — the system of record for order status."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String

from sikupi.db.base import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    buyer_id = Column(String(255), nullable=True, index=True)

    status = Column(String(50), nullable=False, default="new")  # new, pending_payment, paid, shipped, completed, cancelled, ...
    payment_status = Column(String(50), nullable=True)  # raw Midtrans transaction_status
    shipping_status = Column(String(50), nullable=True)  # pending, confirmed, picked_up, in_transit, delivered, cancelled, returned

    # Provider references
    midtrans_order_id = Column(String(255), nullable=True, unique=True, index=True)
    biteship_order_id = Column(String(255), nullable=True, index=True)
    biteship_reference_id = Column(String(255), nullable=True)
    tracking_number = Column(String(255), nullable=True)

    # Timestamps
    paid_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    product_title = Column(String(255), nullable=False, default="")
    qty = Column(Numeric(10, 2), nullable=False)  # kilograms
    price_idr = Column(Integer, nullable=False, default=0)
