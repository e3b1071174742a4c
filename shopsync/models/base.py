"""
Base mixins for database models.

Provides common functionality:
- TimestampMixin: created_at, updated_at timestamps
- TenantScopedMixin: tenant_id foreign key for multi-tenant isolation
- ShopifyMirrorMixin: shopify_id natural key plus upstream timestamps
- generate_uuid: UUID generation for primary keys
- MONEY: shared precision for price columns
"""

import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, func
from sqlalchemy.orm import declared_attr

# Two decimal places, large enough for store lifetime totals
MONEY = Numeric(12, 2)


def generate_uuid() -> str:
    """Generate a UUID4 string for use as a primary key default."""
    return str(uuid.uuid4())


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Timestamp when record was last updated"
    )


class TenantScopedMixin:
    """
    Mixin that adds tenant_id column for multi-tenant isolation.

    Every mirrored Shopify entity belongs to exactly one tenant.
    """

    @declared_attr
    def tenant_id(cls):
        return Column(
            String(36),
            ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
            comment="Owning tenant"
        )


class ShopifyMirrorMixin:
    """
    Mixin for rows that mirror an upstream Shopify record.

    (tenant_id, shopify_id) is the natural key used for upserts; the
    concrete model declares the unique constraint.
    """

    shopify_id = Column(
        String(64),
        nullable=False,
        comment="Shopify resource id in canonical string form"
    )

    shopify_created_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="created_at reported by Shopify"
    )

    shopify_updated_at = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="updated_at reported by Shopify"
    )
