"""
Product mirror of a Shopify product.

total_sales is NOT supplied by Shopify. It is a materialised sum of the
tenant's order line item prices referencing the product, valid as of the
last sales re-derivation pass.
"""

from sqlalchemy import Column, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from shopsync.db_base import Base
from shopsync.models.base import (
    MONEY,
    TimestampMixin,
    TenantScopedMixin,
    ShopifyMirrorMixin,
    generate_uuid,
)


class Product(Base, TimestampMixin, TenantScopedMixin, ShopifyMirrorMixin):
    """Shopify product, unique per (tenant_id, shopify_id)."""

    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    title = Column(String(512), nullable=True)
    handle = Column(String(255), nullable=True)
    description = Column(Text, nullable=True, comment="Shopify body_html")
    vendor = Column(String(255), nullable=True)
    product_type = Column(String(255), nullable=True)
    status = Column(String(50), nullable=True)

    total_sales = Column(
        MONEY,
        nullable=False,
        default=0,
        comment="Derived: sum of line item prices, recomputed on product sync"
    )

    tenant = relationship("Tenant", back_populates="products")
    line_items = relationship("OrderLineItem", back_populates="product")

    __table_args__ = (
        UniqueConstraint("tenant_id", "shopify_id", name="uq_products_tenant_shopify_id"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, shopify_id={self.shopify_id}, tenant_id={self.tenant_id})>"
