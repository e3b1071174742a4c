"""
Shopify data ingestion service.

This service handles:
- Per-entity sync of customers, orders (with line items) and products
- Re-derivation of product sales totals from line items
- Aggregate sync of all three entities with failure isolation
- Link reconciliation for orders and line items synced before the
  customers or products they reference

Every upstream record is upserted by natural key (tenant_id, shopify_id),
so re-running a sync against unchanged upstream data is idempotent.
No operation retries; failures propagate to the caller.

SECURITY: Access tokens are decrypted only to build the API client and
are never logged.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from shopsync.config.settings import IngestionSettings
from shopsync.integrations.shopify.client import ShopifyClient, get_shopify_client
from shopsync.models.tenant import Tenant
from shopsync.platform.secrets import CredentialCipher, redact_secrets
from shopsync.repositories.customers import CustomersRepository
from shopsync.repositories.orders import OrdersRepository
from shopsync.repositories.products import ProductsRepository
from shopsync.repositories.tenants import TenantsRepository
from shopsync.services.errors import AggregateSyncError, TenantNotFoundError
from shopsync.services.sync_guard import TenantSyncGuard
from shopsync.services.transforms import (
    classify_created,
    transform_customer,
    transform_order,
    transform_product,
)

logger = logging.getLogger(__name__)

ENTITY_TYPES = ("customers", "orders", "products")


@dataclass
class SyncSummary:
    """Counts reported by one entity sync."""

    success: bool = True
    total: int = 0
    created: int = 0
    updated: int = 0
    inserted: int = 0

    def record(self, created: bool, inserted: bool) -> None:
        self.total += 1
        if created:
            self.created += 1
        else:
            self.updated += 1
        if inserted:
            self.inserted += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShopifyIngestionService:
    """
    Pulls Shopify collections for a tenant and mirrors them locally.

    All collaborators are injected; the defaults build real ones from
    settings. Store operations are synchronous and run between awaited
    HTTP calls, so entity syncs running concurrently on the shared session
    never interleave inside a store operation.
    """

    def __init__(
        self,
        db_session: Session,
        settings: Optional[IngestionSettings] = None,
        client_factory: Optional[Callable[..., ShopifyClient]] = None,
        cipher: Optional[CredentialCipher] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sync_guard: Optional[TenantSyncGuard] = None,
    ):
        """
        Initialize ingestion service.

        Args:
            db_session: Database session
            settings: Ingestion settings (default: built-in defaults)
            client_factory: Callable (shop_domain, access_token, settings) -> ShopifyClient
            cipher: Credential cipher (default: built from settings.encryption_key)
            clock: Returns the current aware datetime; drives created/updated reporting
            sync_guard: Shared single-flight guard (default: private guard)
        """
        self.db = db_session
        self.settings = settings or IngestionSettings()
        self._client_factory = client_factory or get_shopify_client
        self._cipher = cipher
        self._clock = clock or _utcnow
        self._guard = sync_guard or TenantSyncGuard()

    @property
    def cipher(self) -> CredentialCipher:
        if self._cipher is None:
            self._cipher = CredentialCipher(self.settings.encryption_key)
        return self._cipher

    def _get_tenant(self, tenant_id: str) -> Tenant:
        tenant = TenantsRepository(self.db).get_by_id(tenant_id)
        if tenant is None:
            logger.warning("Tenant not found", extra={"tenant_id": tenant_id})
            raise TenantNotFoundError(tenant_id)
        return tenant

    async def _fetch(self, tenant: Tenant, entity_type: str) -> List[Dict[str, Any]]:
        access_token = self.cipher.decrypt(tenant.access_token_encrypted)
        async with self._client_factory(tenant.shop_domain, access_token, self.settings) as client:
            if entity_type == "customers":
                return await client.fetch_customers()
            if entity_type == "orders":
                return await client.fetch_orders()
            return await client.fetch_products()

    async def _run_entity_sync(self, tenant_id: str, entity_type: str) -> SyncSummary:
        tenant = self._get_tenant(tenant_id)
        log_context = {
            "tenant_id": tenant_id,
            "shop_domain": tenant.shop_domain,
            "entity_type": entity_type,
        }
        logger.info("Starting entity sync", extra=log_context)

        try:
            records = await self._fetch(tenant, entity_type)
            if entity_type == "customers":
                summary = self._apply_customers(tenant_id, records)
            elif entity_type == "orders":
                summary = self._apply_orders(tenant_id, records)
            else:
                summary = self._apply_products(tenant_id, records)
        except Exception as e:
            logger.error(
                "Entity sync failed",
                extra=redact_secrets(
                    {**log_context, "error": str(e), "error_type": type(e).__name__}
                ),
            )
            raise

        logger.info(
            "Entity sync complete",
            extra={
                **log_context,
                "total": summary.total,
                "created_count": summary.created,
                "updated_count": summary.updated,
                "inserted_count": summary.inserted,
            },
        )
        return summary

    def _apply_customers(self, tenant_id: str, records: List[Dict[str, Any]]) -> SyncSummary:
        repo = CustomersRepository(self.db, tenant_id)
        summary = SyncSummary()

        for raw in records:
            mapped = transform_customer(raw)
            _, inserted = repo.upsert_by_shopify_id(mapped.shopify_id, mapped.fields)
            summary.record(self._is_created(mapped.fields["shopify_created_at"]), inserted)

        return summary

    def _apply_orders(self, tenant_id: str, records: List[Dict[str, Any]]) -> SyncSummary:
        orders = OrdersRepository(self.db, tenant_id)
        customers = CustomersRepository(self.db, tenant_id)
        products = ProductsRepository(self.db, tenant_id)
        summary = SyncSummary()

        for raw in records:
            mapped = transform_order(raw)
            fields = dict(mapped.fields)

            # Weak link: unknown customer stays NULL, nothing is created
            customer_ref = fields["customer_shopify_id"]
            customer = customers.get_by_shopify_id(customer_ref) if customer_ref else None
            fields["customer_id"] = customer.id if customer else None

            line_items = mapped.line_items
            if line_items is not None:
                product_ids = products.map_ids_by_shopify_id(
                    item["product_shopify_id"] for item in line_items if item["product_shopify_id"]
                )
                line_items = [
                    {**item, "product_id": product_ids.get(item["product_shopify_id"])}
                    for item in line_items
                ]

            _, inserted = orders.upsert_with_line_items(mapped.shopify_id, fields, line_items)
            summary.record(self._is_created(fields["shopify_created_at"]), inserted)

        return summary

    def _apply_products(self, tenant_id: str, records: List[Dict[str, Any]]) -> SyncSummary:
        repo = ProductsRepository(self.db, tenant_id)
        summary = SyncSummary()

        for raw in records:
            mapped = transform_product(raw)
            _, inserted = repo.upsert_by_shopify_id(mapped.shopify_id, mapped.fields)
            summary.record(self._is_created(mapped.fields["shopify_created_at"]), inserted)

        self.rederive_product_sales(tenant_id)
        return summary

    def _is_created(self, shopify_created_at: Optional[datetime]) -> bool:
        return classify_created(
            shopify_created_at, self._clock(), self.settings.created_window_seconds
        )

    async def sync_customers(self, tenant_id: str) -> Dict[str, Any]:
        """
        Sync every customer of the tenant's store.

        Returns:
            {success, total, created, updated}

        Raises:
            TenantNotFoundError: Unknown tenant
            SyncInProgressError: Tenant already syncing
            ShopifyError: Fetch failed
            RecordTransformError / StoreWriteError: A record could not be written;
                records written before it are kept
        """
        async with self._guard.hold(tenant_id):
            summary = await self._run_entity_sync(tenant_id, "customers")
        return summary.to_dict()

    async def sync_orders(self, tenant_id: str) -> Dict[str, Any]:
        """
        Sync every order of the tenant's store, replacing each order's line items.

        Same return value and failure modes as sync_customers.
        """
        async with self._guard.hold(tenant_id):
            summary = await self._run_entity_sync(tenant_id, "orders")
        return summary.to_dict()

    async def sync_products(self, tenant_id: str) -> Dict[str, Any]:
        """
        Sync every product of the tenant's store, then re-derive sales totals.

        Same return value and failure modes as sync_customers.
        """
        async with self._guard.hold(tenant_id):
            summary = await self._run_entity_sync(tenant_id, "products")
        return summary.to_dict()

    def rederive_product_sales(self, tenant_id: str) -> int:
        """
        Recompute total_sales of every product of the tenant.

        total_sales = sum of price over line items referencing the product,
        regardless of order status; 0 when there are none.

        Returns:
            Number of products updated
        """
        products = ProductsRepository(self.db, tenant_id)
        orders = OrdersRepository(self.db, tenant_id)

        updated = 0
        for product in products.get_all():
            product.total_sales = orders.sum_line_item_prices(product.id)
            updated += 1

        products.commit()

        logger.info(
            "Product sales re-derived",
            extra={"tenant_id": tenant_id, "products_updated": updated},
        )
        return updated

    def reconcile_links(self, tenant_id: str) -> Dict[str, int]:
        """
        Fill in customer and product links that could not be resolved when
        the order was synced.

        Uses the upstream references stored on orders and line items. When
        any line item gains a product link, sales totals are re-derived.

        Returns:
            {orders_linked, line_items_linked, products_rederived}
        """
        orders = OrdersRepository(self.db, tenant_id)

        unlinked_orders = orders.get_unlinked_customer_refs()
        customer_ids = CustomersRepository(self.db, tenant_id).map_ids_by_shopify_id(
            order.customer_shopify_id for order in unlinked_orders
        )
        orders_linked = 0
        for order in unlinked_orders:
            customer_id = customer_ids.get(order.customer_shopify_id)
            if customer_id:
                order.customer_id = customer_id
                orders_linked += 1

        unlinked_items = orders.get_unlinked_product_refs()
        product_ids = ProductsRepository(self.db, tenant_id).map_ids_by_shopify_id(
            item.product_shopify_id for item in unlinked_items
        )
        line_items_linked = 0
        for item in unlinked_items:
            product_id = product_ids.get(item.product_shopify_id)
            if product_id:
                item.product_id = product_id
                line_items_linked += 1

        orders.commit()

        products_rederived = self.rederive_product_sales(tenant_id) if line_items_linked else 0

        links = {
            "orders_linked": orders_linked,
            "line_items_linked": line_items_linked,
            "products_rederived": products_rederived,
        }
        logger.info("Links reconciled", extra={"tenant_id": tenant_id, **links})
        return links

    async def sync_all(self, tenant_id: str) -> Dict[str, Any]:
        """
        Run the customer, order and product syncs concurrently.

        A failing entity sync does not stop the others. Once all three
        succeed, links left unresolved by the concurrent ordering are
        reconciled.

        Returns:
            {success, customers, orders, products, links}

        Raises:
            TenantNotFoundError: Unknown tenant
            SyncInProgressError: Tenant already syncing
            AggregateSyncError: At least one entity sync failed; carries the
                summaries of the others and the failure messages
        """
        async with self._guard.hold(tenant_id):
            tenant = self._get_tenant(tenant_id)
            logger.info(
                "Starting full sync",
                extra={"tenant_id": tenant_id, "shop_domain": tenant.shop_domain},
            )

            outcomes = await asyncio.gather(
                *(self._run_entity_sync(tenant_id, entity_type) for entity_type in ENTITY_TYPES),
                return_exceptions=True,
            )

            results: Dict[str, Any] = {}
            failures: Dict[str, str] = {}
            for entity_type, outcome in zip(ENTITY_TYPES, outcomes):
                if isinstance(outcome, SyncSummary):
                    results[entity_type] = outcome.to_dict()
                elif isinstance(outcome, Exception):
                    failures[entity_type] = str(outcome) or type(outcome).__name__
                else:
                    raise outcome

            if failures:
                logger.error(
                    "Full sync failed",
                    extra={"tenant_id": tenant_id, "failures": failures, "succeeded": sorted(results)},
                )
                raise AggregateSyncError(tenant_id, results, failures)

            links = self.reconcile_links(tenant_id)

        logger.info(
            "Full sync complete",
            extra={"tenant_id": tenant_id, "results": results, "links": links},
        )
        return {"success": True, **results, "links": links}
