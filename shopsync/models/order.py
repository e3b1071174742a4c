"""
Order and OrderLineItem mirrors of Shopify orders.

Links to Customer and Product are weak references: they are resolved by
natural key lookup at sync time and stay NULL when the referenced row is
not known locally. The raw upstream references are kept alongside so a
later reconciliation pass can fill the links in.

Line items are owned by their order and are fully replaced on every
order sync; their local ids are not stable across syncs.
"""

from sqlalchemy import (
    Column, String, Integer, DateTime, ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship

from shopsync.db_base import Base
from shopsync.models.base import (
    MONEY,
    TimestampMixin,
    TenantScopedMixin,
    ShopifyMirrorMixin,
    generate_uuid,
)


class Order(Base, TimestampMixin, TenantScopedMixin, ShopifyMirrorMixin):
    """Shopify order, unique per (tenant_id, shopify_id)."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    order_number = Column(String(64), nullable=True)

    customer_id = Column(
        String(36),
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Local customer link, NULL when not synced yet"
    )
    customer_shopify_id = Column(
        String(64),
        nullable=True,
        comment="Upstream customer reference used for link reconciliation"
    )

    email = Column(String(255), nullable=True)
    financial_status = Column(String(50), nullable=True)
    fulfillment_status = Column(String(50), nullable=True)

    subtotal_price = Column(MONEY, nullable=False, default=0)
    total_tax = Column(MONEY, nullable=False, default=0)
    total_price = Column(MONEY, nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="USD")

    order_date = Column(
        DateTime(timezone=True),
        nullable=False,
        comment="Shopify created_at, used for trends"
    )

    tenant = relationship("Tenant", back_populates="orders")
    customer = relationship("Customer", back_populates="orders")
    line_items = relationship(
        "OrderLineItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "shopify_id", name="uq_orders_tenant_shopify_id"),
        Index("ix_orders_tenant_order_date", "tenant_id", "order_date"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, shopify_id={self.shopify_id}, tenant_id={self.tenant_id})>"


class OrderLineItem(Base, TenantScopedMixin):
    """One line of an order. Owned by exactly one Order."""

    __tablename__ = "order_line_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    order_id = Column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shopify_id = Column(String(64), nullable=False)

    title = Column(String(512), nullable=True, comment="Title snapshot at order time")
    quantity = Column(Integer, nullable=False, default=0)
    price = Column(MONEY, nullable=False, default=0)

    product_id = Column(
        String(36),
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Local product link, NULL when product unknown"
    )
    product_shopify_id = Column(
        String(64),
        nullable=True,
        comment="Upstream product reference used for link reconciliation"
    )

    order = relationship("Order", back_populates="line_items")
    product = relationship("Product", back_populates="line_items")

    def __repr__(self) -> str:
        return f"<OrderLineItem(id={self.id}, order_id={self.order_id}, product_id={self.product_id})>"
