"""
Customer mirror of a Shopify customer record.

Spend and order count are overwritten wholesale from the upstream
snapshot on every sync; they are never computed locally.
"""

from sqlalchemy import Column, String, Integer, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from shopsync.db_base import Base
from shopsync.models.base import (
    MONEY,
    TimestampMixin,
    TenantScopedMixin,
    ShopifyMirrorMixin,
    generate_uuid,
)


class Customer(Base, TimestampMixin, TenantScopedMixin, ShopifyMirrorMixin):
    """Shopify customer, unique per (tenant_id, shopify_id)."""

    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_uuid)

    email = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)

    total_spent = Column(
        MONEY,
        nullable=False,
        default=0,
        comment="Lifetime spend as reported by Shopify"
    )
    orders_count = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Lifetime order count as reported by Shopify"
    )

    tenant = relationship("Tenant", back_populates="customers")
    orders = relationship("Order", back_populates="customer")

    __table_args__ = (
        UniqueConstraint("tenant_id", "shopify_id", name="uq_customers_tenant_shopify_id"),
        Index("ix_customers_tenant_total_spent", "tenant_id", "total_spent"),
    )

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part) or "N/A"

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, shopify_id={self.shopify_id}, tenant_id={self.tenant_id})>"
