"""
Tenant model for multi-tenant ingestion.

A Tenant is one onboarded Shopify store connection. Tenant.id is the
tenant_id carried by every mirrored customer, order, line item and product.

SECURITY: the Shopify access token is stored encrypted; decrypt it only
when building an API client.
"""

from sqlalchemy import Column, String, Text, Boolean, Index
from sqlalchemy.orm import relationship

from shopsync.db_base import Base
from shopsync.models.base import TimestampMixin, generate_uuid

# Seeded demo stores carry this placeholder token and cannot reach Shopify
DEMO_ACCESS_TOKEN = "shpat_demo_token_for_testing_only"


class Tenant(Base, TimestampMixin):
    """
    One external store connection.

    Lifecycle: created once at onboarding, updated for credential rotation
    or activation toggling, never deleted by the ingestion pipeline.
    """

    __tablename__ = "tenants"

    id = Column(
        String(36),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key - this IS the tenant_id used across all models"
    )

    shop_domain = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Shopify store domain (mystore.myshopify.com)"
    )

    access_token_encrypted = Column(
        Text,
        nullable=False,
        comment="Encrypted Shopify Admin API access token"
    )

    name = Column(
        String(255),
        nullable=False,
        comment="Display name of the store"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Inactive tenants are skipped by the scheduler"
    )

    customers = relationship("Customer", back_populates="tenant", lazy="dynamic")
    orders = relationship("Order", back_populates="tenant", lazy="dynamic")
    products = relationship("Product", back_populates="tenant", lazy="dynamic")

    __table_args__ = (
        Index("ix_tenants_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, shop_domain={self.shop_domain}, is_active={self.is_active})>"
