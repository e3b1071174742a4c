"""
Read-only analytics over a tenant's mirrored Shopify data.

Daily series are bucketed by the UTC calendar day of order_date and
returned in ascending date order. Money values are rounded to 2 places and
returned as floats so they serialise directly to JSON.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from shopsync.models.customer import Customer
from shopsync.models.order import Order, OrderLineItem

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 5
DEFAULT_FINANCIAL_STATUS = "paid"


def _round_money(value: Any) -> float:
    amount = Decimal(str(value or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(amount)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class InsightsService:
    """Dashboard metrics for one tenant."""

    def __init__(self, db_session: Session, tenant_id: str):
        if not tenant_id:
            raise ValueError("tenant_id is required")
        self.db = db_session
        self.tenant_id = tenant_id

    def get_overview_metrics(self) -> Dict[str, Any]:
        total_customers = (
            self.db.query(func.count(Customer.id))
            .filter(Customer.tenant_id == self.tenant_id)
            .scalar()
        )
        total_orders, total_revenue = (
            self.db.query(func.count(Order.id), func.coalesce(func.sum(Order.total_price), 0))
            .filter(Order.tenant_id == self.tenant_id)
            .one()
        )

        revenue = Decimal(str(total_revenue or 0))
        average = revenue / total_orders if total_orders else Decimal("0")

        return {
            "total_customers": total_customers or 0,
            "total_orders": total_orders or 0,
            "total_revenue": _round_money(revenue),
            "average_order_value": _round_money(average),
        }

    def _orders_in_range(self, start: datetime, end: datetime) -> List[Tuple[datetime, Any]]:
        return (
            self.db.query(Order.order_date, Order.total_price)
            .filter(
                Order.tenant_id == self.tenant_id,
                Order.order_date >= start,
                Order.order_date <= end,
            )
            .order_by(Order.order_date.asc())
            .all()
        )

    def _daily_buckets(self, start: datetime, end: datetime) -> "OrderedDict[str, Dict[str, Any]]":
        buckets: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for order_date, total_price in self._orders_in_range(start, end):
            day = _as_utc(order_date).date().isoformat()
            bucket = buckets.setdefault(day, {"count": 0, "revenue": Decimal("0")})
            bucket["count"] += 1
            bucket["revenue"] += Decimal(str(total_price or 0))
        return OrderedDict(sorted(buckets.items()))

    def get_orders_by_date(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Order count and revenue per day within [start, end]."""
        return [
            {"date": day, "count": bucket["count"], "revenue": _round_money(bucket["revenue"])}
            for day, bucket in self._daily_buckets(start, end).items()
        ]

    def get_revenue_trend(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return [
            {"date": day, "revenue": _round_money(bucket["revenue"])}
            for day, bucket in self._daily_buckets(start, end).items()
        ]

    def get_order_count_trend(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        return [
            {"date": day, "count": bucket["count"]}
            for day, bucket in self._daily_buckets(start, end).items()
        ]

    def get_top_customers(self, limit: int = DEFAULT_LIST_LIMIT) -> List[Dict[str, Any]]:
        """Customers with positive lifetime spend, highest first."""
        customers = (
            self.db.query(Customer)
            .filter(Customer.tenant_id == self.tenant_id, Customer.total_spent > 0)
            .order_by(Customer.total_spent.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "id": customer.id,
                "email": customer.email,
                "name": customer.display_name,
                "total_spent": _round_money(customer.total_spent),
                "orders_count": customer.orders_count,
            }
            for customer in customers
        ]

    def get_recent_orders(self, limit: int = DEFAULT_LIST_LIMIT) -> List[Dict[str, Any]]:
        """Newest orders with customer names and line items."""
        orders = (
            self.db.query(Order)
            .options(
                selectinload(Order.customer),
                selectinload(Order.line_items).selectinload(OrderLineItem.product),
            )
            .filter(Order.tenant_id == self.tenant_id)
            .order_by(Order.order_date.desc())
            .limit(limit)
            .all()
        )
        return [self._serialize_order(order) for order in orders]

    @staticmethod
    def _serialize_order(order: Order) -> Dict[str, Any]:
        customer: Optional[Dict[str, Any]] = None
        if order.customer is not None:
            customer = {
                "first_name": order.customer.first_name,
                "last_name": order.customer.last_name,
            }

        return {
            "id": order.id,
            "order_number": order.order_number,
            "order_date": _as_utc(order.order_date).isoformat(),
            "total_price": _round_money(order.total_price),
            "financial_status": order.financial_status or DEFAULT_FINANCIAL_STATUS,
            "customer": customer,
            "line_items": [
                {
                    "id": item.id,
                    "title": item.title,
                    "quantity": item.quantity,
                    "price": _round_money(item.price),
                    "product": {"title": item.product.title} if item.product is not None else None,
                }
                for item in order.line_items
            ],
        }
