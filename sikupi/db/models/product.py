"""Product model — listed coffee grounds and derivative goods."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from sikupi.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    price_idr = Column(Integer, nullable=False, default=0)
    stock_qty = Column(Numeric(10, 2), nullable=False, default=0)  # kilograms

    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
