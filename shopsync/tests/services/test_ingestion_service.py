"""
Tests for per-entity Shopify syncs.

Tests cover:
- Upsert by natural key and idempotent re-sync
- Created/updated reporting against a fixed clock
- Failure propagation and partial progress
- Customer and product link resolution on orders
- Line item replacement semantics
"""

from decimal import Decimal

import pytest

from shopsync.integrations.shopify.exceptions import ShopifyConnectionError
from shopsync.repositories.customers import CustomersRepository
from shopsync.repositories.orders import OrdersRepository
from shopsync.repositories.products import ProductsRepository
from shopsync.services.errors import (
    RecordTransformError,
    SyncInProgressError,
    TenantNotFoundError,
)


class TestSyncCustomers:
    """Tests for sync_customers."""

    @pytest.mark.asyncio
    async def test_inserts_customers_and_reports_summary(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["customers"] = [payloads.customer(1001), payloads.customer(1002)]

        result = await ingestion_service.sync_customers(tenant.id)

        assert result == {"success": True, "total": 2, "created": 0, "updated": 2}
        repo = CustomersRepository(db_session, tenant.id)
        assert repo.count() == 2
        stored = repo.get_by_shopify_id("1001")
        assert stored.total_spent == Decimal("125.50")
        assert stored.orders_count == 3

    @pytest.mark.asyncio
    async def test_opens_client_with_decrypted_token(
        self, ingestion_service, fake_shopify, tenant
    ):
        await ingestion_service.sync_customers(tenant.id)

        assert fake_shopify.opened_with == [
            ("test-store.myshopify.com", "shpat_test_token_0123456789")
        ]
        assert fake_shopify.closed == 1

    @pytest.mark.asyncio
    async def test_resync_is_idempotent(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["customers"] = [payloads.customer(1001), payloads.customer(1002)]

        first = await ingestion_service.sync_customers(tenant.id)
        second = await ingestion_service.sync_customers(tenant.id)

        assert first == second
        assert CustomersRepository(db_session, tenant.id).count() == 2

    @pytest.mark.asyncio
    async def test_changed_fields_overwrite_existing_row(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["customers"] = [payloads.customer(1001, email="old@example.com")]
        await ingestion_service.sync_customers(tenant.id)

        fake_shopify.data["customers"] = [
            payloads.customer(1001, email="new@example.com", total_spent="300.00")
        ]
        await ingestion_service.sync_customers(tenant.id)

        repo = CustomersRepository(db_session, tenant.id)
        assert repo.count() == 1
        stored = repo.get_by_shopify_id("1001")
        assert stored.email == "new@example.com"
        assert stored.total_spent == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_recent_record_reported_as_created(
        self, ingestion_service, fake_shopify, payloads, tenant
    ):
        fake_shopify.data["customers"] = [
            payloads.customer(1001, created_at=payloads.created_ago(30)),
            payloads.customer(1002, created_at=payloads.created_ago(120)),
        ]

        result = await ingestion_service.sync_customers(tenant.id)

        assert result["created"] == 1
        assert result["updated"] == 1

    @pytest.mark.asyncio
    async def test_missing_created_at_reported_as_updated(
        self, ingestion_service, fake_shopify, payloads, tenant
    ):
        fake_shopify.data["customers"] = [payloads.customer(1001, created_at=None)]

        result = await ingestion_service.sync_customers(tenant.id)

        assert result["created"] == 0
        assert result["updated"] == 1

    @pytest.mark.asyncio
    async def test_empty_collection(self, ingestion_service, tenant):
        result = await ingestion_service.sync_customers(tenant.id)

        assert result == {"success": True, "total": 0, "created": 0, "updated": 0}

    @pytest.mark.asyncio
    async def test_unknown_tenant_raises(self, ingestion_service, fake_shopify, sync_guard):
        with pytest.raises(TenantNotFoundError):
            await ingestion_service.sync_customers("no-such-tenant")

        assert fake_shopify.fetches == []
        assert not sync_guard.is_running("no-such-tenant")

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates_and_writes_nothing(
        self, ingestion_service, fake_shopify, tenant, db_session, sync_guard
    ):
        fake_shopify.errors["customers"] = ShopifyConnectionError("Request timeout: read")

        with pytest.raises(ShopifyConnectionError):
            await ingestion_service.sync_customers(tenant.id)

        assert CustomersRepository(db_session, tenant.id).count() == 0
        assert not sync_guard.is_running(tenant.id)

    @pytest.mark.asyncio
    async def test_bad_record_stops_sync_and_keeps_earlier_rows(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["customers"] = [
            payloads.customer(1001),
            payloads.customer(1002, total_spent="not-a-number"),
            payloads.customer(1003),
        ]

        with pytest.raises(RecordTransformError) as exc_info:
            await ingestion_service.sync_customers(tenant.id)

        assert exc_info.value.record_id == "1002"
        repo = CustomersRepository(db_session, tenant.id)
        assert repo.count() == 1
        assert repo.get_by_shopify_id("1001") is not None

    @pytest.mark.asyncio
    async def test_rejected_while_tenant_is_syncing(
        self, ingestion_service, tenant, sync_guard
    ):
        sync_guard.acquire(tenant.id)

        with pytest.raises(SyncInProgressError):
            await ingestion_service.sync_customers(tenant.id)

        assert sync_guard.is_running(tenant.id)

    @pytest.mark.asyncio
    async def test_rows_are_scoped_to_tenant(
        self, ingestion_service, fake_shopify, payloads, tenant, make_tenant, db_session
    ):
        other = make_tenant()
        fake_shopify.data["customers"] = [payloads.customer(1001)]

        await ingestion_service.sync_customers(tenant.id)
        await ingestion_service.sync_customers(other.id)

        assert CustomersRepository(db_session, tenant.id).count() == 1
        assert CustomersRepository(db_session, other.id).count() == 1
        assert (
            CustomersRepository(db_session, tenant.id).get_by_shopify_id("1001").id
            != CustomersRepository(db_session, other.id).get_by_shopify_id("1001").id
        )


class TestSyncOrders:
    """Tests for sync_orders."""

    @pytest.mark.asyncio
    async def test_links_known_customer(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["customers"] = [payloads.customer(1001)]
        fake_shopify.data["orders"] = [payloads.order(3001, customer_id=1001)]
        await ingestion_service.sync_customers(tenant.id)

        result = await ingestion_service.sync_orders(tenant.id)

        assert result["total"] == 1
        customer = CustomersRepository(db_session, tenant.id).get_by_shopify_id("1001")
        order = OrdersRepository(db_session, tenant.id).get_by_shopify_id("3001")
        assert order.customer_id == customer.id
        assert order.currency == "EUR"
        assert order.total_price == Decimal("22.00")

    @pytest.mark.asyncio
    async def test_unknown_customer_leaves_link_empty(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["orders"] = [payloads.order(3001, customer_id=9999)]

        await ingestion_service.sync_orders(tenant.id)

        order = OrdersRepository(db_session, tenant.id).get_by_shopify_id("3001")
        assert order.customer_id is None
        assert order.customer_shopify_id == "9999"
        assert CustomersRepository(db_session, tenant.id).count() == 0

    @pytest.mark.asyncio
    async def test_guest_order_has_no_customer(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["orders"] = [payloads.order(3001, customer_id=None)]

        await ingestion_service.sync_orders(tenant.id)

        order = OrdersRepository(db_session, tenant.id).get_by_shopify_id("3001")
        assert order.customer_id is None
        assert order.customer_shopify_id is None

    @pytest.mark.asyncio
    async def test_links_line_items_to_known_products(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["products"] = [payloads.product(2001)]
        fake_shopify.data["orders"] = [
            payloads.order(3001, line_items=[
                payloads.line_item(4001, product_id=2001),
                payloads.line_item(4002, product_id=2999),
            ])
        ]
        await ingestion_service.sync_products(tenant.id)

        await ingestion_service.sync_orders(tenant.id)

        orders = OrdersRepository(db_session, tenant.id)
        product = ProductsRepository(db_session, tenant.id).get_by_shopify_id("2001")
        items = {i.shopify_id: i for i in orders.get_line_items(orders.get_by_shopify_id("3001").id)}
        assert items["4001"].product_id == product.id
        assert items["4002"].product_id is None
        assert items["4002"].product_shopify_id == "2999"

    @pytest.mark.asyncio
    async def test_line_items_are_replaced_not_merged(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["orders"] = [
            payloads.order(3001, line_items=[payloads.line_item(4001), payloads.line_item(4002)])
        ]
        await ingestion_service.sync_orders(tenant.id)

        fake_shopify.data["orders"] = [payloads.order(3001, line_items=[payloads.line_item(4001)])]
        await ingestion_service.sync_orders(tenant.id)

        orders = OrdersRepository(db_session, tenant.id)
        order_id = orders.get_by_shopify_id("3001").id
        assert [i.shopify_id for i in orders.get_line_items(order_id)] == ["4001"]
        assert orders.count() == 1

    @pytest.mark.asyncio
    async def test_empty_line_items_clears_existing(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["orders"] = [payloads.order(3001)]
        await ingestion_service.sync_orders(tenant.id)

        raw = payloads.order(3001)
        raw["line_items"] = []
        fake_shopify.data["orders"] = [raw]
        await ingestion_service.sync_orders(tenant.id)

        orders = OrdersRepository(db_session, tenant.id)
        assert orders.get_line_items(orders.get_by_shopify_id("3001").id) == []

    @pytest.mark.asyncio
    async def test_absent_line_items_key_keeps_existing(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["orders"] = [payloads.order(3001)]
        await ingestion_service.sync_orders(tenant.id)

        raw = payloads.order(3001, financial_status="refunded")
        del raw["line_items"]
        fake_shopify.data["orders"] = [raw]
        await ingestion_service.sync_orders(tenant.id)

        orders = OrdersRepository(db_session, tenant.id)
        order = orders.get_by_shopify_id("3001")
        assert order.financial_status == "refunded"
        assert len(orders.get_line_items(order.id)) == 1

    @pytest.mark.asyncio
    async def test_order_number_falls_back_to_number(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["orders"] = [payloads.order(3001, order_number=None, number=17)]

        await ingestion_service.sync_orders(tenant.id)

        assert OrdersRepository(db_session, tenant.id).get_by_shopify_id("3001").order_number == "17"

    @pytest.mark.asyncio
    async def test_order_without_created_at_fails(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["orders"] = [payloads.order(3001), payloads.order(3002, created_at=None)]

        with pytest.raises(RecordTransformError):
            await ingestion_service.sync_orders(tenant.id)

        orders = OrdersRepository(db_session, tenant.id)
        assert orders.get_by_shopify_id("3001") is not None
        assert orders.get_by_shopify_id("3002") is None


class TestSyncProducts:
    """Tests for sync_products."""

    @pytest.mark.asyncio
    async def test_upserts_products(
        self, ingestion_service, fake_shopify, payloads, tenant, db_session
    ):
        fake_shopify.data["products"] = [
            payloads.product(2001, created_at=payloads.created_ago(5)),
            payloads.product(2002),
        ]

        result = await ingestion_service.sync_products(tenant.id)

        assert result == {"success": True, "total": 2, "created": 1, "updated": 1}
        product = ProductsRepository(db_session, tenant.id).get_by_shopify_id("2001")
        assert product.description == "<p>Great product</p>"
        assert product.total_sales == Decimal("0")
