"""
Repository for tenant-scoped orders and their line items.

Line items are owned by their order: they are only ever replaced as a
whole, in the same transaction as the order upsert.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from shopsync.models.order import Order, OrderLineItem
from shopsync.repositories.base_repo import BaseRepository

logger = logging.getLogger(__name__)


class OrdersRepository(BaseRepository[Order]):
    """Orders of one tenant."""

    def _get_model_class(self) -> type[Order]:
        return Order

    def upsert_with_line_items(
        self,
        shopify_id: str,
        fields: Dict[str, Any],
        line_items: Optional[List[Dict[str, Any]]],
    ) -> Tuple[Order, bool]:
        """
        Upsert an order and replace its line items in one transaction.

        Args:
            shopify_id: Canonical upstream order id
            fields: Mapped order columns
            line_items: Mapped line item rows, or None to leave existing
                line items untouched

        Returns:
            (order, inserted) tuple

        Raises:
            StoreWriteError: If any write fails; nothing of this order is kept
        """
        order, inserted = self.upsert_by_shopify_id(shopify_id, fields, commit=False)

        if line_items is not None:
            try:
                self.delete_line_items(order.id)
                self.create_line_items(order.id, line_items)
            except SQLAlchemyError as e:
                self._rollback("replace line items of", e)

        self.commit()
        return order, inserted

    def delete_line_items(self, order_id: str) -> int:
        """Delete every line item of an order. Does not commit."""
        return (
            self.db_session.query(OrderLineItem)
            .filter(
                OrderLineItem.tenant_id == self.tenant_id,
                OrderLineItem.order_id == order_id,
            )
            .delete(synchronize_session=False)
        )

    def create_line_items(self, order_id: str, line_items: List[Dict[str, Any]]) -> List[OrderLineItem]:
        """Insert line items for an order. Does not commit."""
        rows = [
            OrderLineItem(tenant_id=self.tenant_id, order_id=order_id, **item)
            for item in line_items
        ]
        self.db_session.add_all(rows)
        self.db_session.flush()
        return rows

    def get_line_items(self, order_id: str) -> List[OrderLineItem]:
        return (
            self.db_session.query(OrderLineItem)
            .filter(
                OrderLineItem.tenant_id == self.tenant_id,
                OrderLineItem.order_id == order_id,
            )
            .all()
        )

    def sum_line_item_prices(self, product_id: str) -> Decimal:
        """Sum of price over the tenant's line items referencing product_id."""
        total = (
            self.db_session.query(func.coalesce(func.sum(OrderLineItem.price), 0))
            .filter(
                OrderLineItem.tenant_id == self.tenant_id,
                OrderLineItem.product_id == product_id,
            )
            .scalar()
        )
        return Decimal(str(total or 0)).quantize(Decimal("0.01"))

    def get_unlinked_customer_refs(self) -> List[Order]:
        """Orders with no customer link but an upstream customer reference."""
        return (
            self._query()
            .filter(Order.customer_id.is_(None), Order.customer_shopify_id.isnot(None))
            .all()
        )

    def get_unlinked_product_refs(self) -> List[OrderLineItem]:
        """Line items with no product link but an upstream product reference."""
        return (
            self.db_session.query(OrderLineItem)
            .filter(
                OrderLineItem.tenant_id == self.tenant_id,
                OrderLineItem.product_id.is_(None),
                OrderLineItem.product_shopify_id.isnot(None),
            )
            .all()
        )
