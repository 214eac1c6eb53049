"""SqlOrderStore: OrderStore backed by the Postgres orders tables."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sikupi.core.exceptions import OrderNotFoundError, OrderStoreError
from sikupi.db.models.order import Order, OrderItem
from sikupi.db.models.product import Product
from sikupi.orders.store import OrderTransition
from sikupi.webhooks.ledger import WebhookSource

logger = structlog.get_logger(__name__)

CANCELLED = "cancelled"


class SqlOrderStore:
    """Applies webhook transitions to the orders table.

    Safe to apply redundantly: paid_at and delivered_at are only stamped
    once, and stock is only restored on the first move into cancelled.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _lookup(self, external_order_id: str, transition: OrderTransition):
        if transition.internal_order_id is not None:
            return select(Order).where(Order.id == transition.internal_order_id)
        if transition.source == WebhookSource.PAYMENT:
            return select(Order).where(Order.midtrans_order_id == external_order_id)
        return select(Order).where(Order.biteship_order_id == external_order_id)

    async def apply_transition(self, external_order_id: str, transition: OrderTransition) -> None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(self._lookup(external_order_id, transition).with_for_update())
                order = result.scalar_one_or_none()
                if order is None:
                    raise OrderNotFoundError(external_order_id)

                previous_status = order.status
                now = datetime.now(UTC)

                if transition.payment_status is not None:
                    order.payment_status = transition.payment_status
                if transition.shipping_status is not None:
                    order.shipping_status = transition.shipping_status
                if transition.tracking_number:
                    order.tracking_number = transition.tracking_number
                if transition.source == WebhookSource.SHIPPING and not order.biteship_order_id:
                    order.biteship_order_id = external_order_id
                if transition.order_status is not None:
                    order.status = transition.order_status

                if transition.mark_paid and order.paid_at is None:
                    order.paid_at = now
                if transition.mark_delivered and order.delivered_at is None:
                    order.delivered_at = now

                if transition.order_status == CANCELLED and previous_status != CANCELLED:
                    await self._restore_stock(session, order.id)

                order.updated_at = now
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "order_store_write_failed",
                external_order_id=external_order_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise OrderStoreError(f"Failed to update order {external_order_id}") from e

        logger.info(
            "order_transition_applied",
            order_id=order.id,
            external_order_id=external_order_id,
            previous_status=previous_status,
            status=order.status,
            payment_status=order.payment_status,
            shipping_status=order.shipping_status,
        )

    async def _restore_stock(self, session: AsyncSession, order_id: int) -> None:
        """Put the quantities of a cancelled order back into product stock."""
        items = await session.execute(select(OrderItem).where(OrderItem.order_id == order_id))
        for item in items.scalars():
            product = await session.get(Product, item.product_id, with_for_update=True)
            if product is None:
                logger.warning("stock_restore_product_missing", order_id=order_id, product_id=item.product_id)
                continue
            product.stock_qty = product.stock_qty + item.qty
            logger.info("stock_restored", order_id=order_id, product_id=item.product_id, qty=str(item.qty))
