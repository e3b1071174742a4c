"""
Database models for mirrored Shopify data.

All mirrored entities are tenant-scoped via TenantScopedMixin.
Importing this package registers every table on Base.metadata.
"""

from shopsync.models.base import TimestampMixin, TenantScopedMixin, ShopifyMirrorMixin
from shopsync.models.tenant import Tenant, DEMO_ACCESS_TOKEN
from shopsync.models.customer import Customer
from shopsync.models.product import Product
from shopsync.models.order import Order, OrderLineItem

__all__ = [
    "TimestampMixin",
    "TenantScopedMixin",
    "ShopifyMirrorMixin",
    "Tenant",
    "DEMO_ACCESS_TOKEN",
    "Customer",
    "Product",
    "Order",
    "OrderLineItem",
]
