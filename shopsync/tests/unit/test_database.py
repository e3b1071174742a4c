"""
Tests for database bootstrap and repositories.
"""

from decimal import Decimal

import pytest

from shopsync.database.init_db import DEMO_SHOP_DOMAIN, init_database, seed_demo_tenant
from shopsync.database.session import create_db_engine
from shopsync.repositories.customers import CustomersRepository
from shopsync.repositories.orders import OrdersRepository
from shopsync.repositories.products import ProductsRepository
from shopsync.repositories.tenants import DuplicateShopDomainError, TenantsRepository
from shopsync.services.tenant_service import is_demo_tenant


class TestEngineAndInit:
    """Tests for engine construction and table creation."""

    def test_missing_url_raises(self):
        with pytest.raises(ValueError, match="DATABASE_URL"):
            create_db_engine(None)

    def test_init_database_creates_tables(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'shop.db'}")

        init_database(engine)

        from sqlalchemy import inspect
        assert {"tenants", "customers", "orders", "order_line_items", "products"} <= set(
            inspect(engine).get_table_names()
        )
        engine.dispose()

    def test_seed_demo_tenant_once(self, session_factory, cipher, db_session):
        assert seed_demo_tenant(session_factory, cipher) is True
        assert seed_demo_tenant(session_factory, cipher) is False

        demo = TenantsRepository(db_session).get_by_shop_domain(DEMO_SHOP_DOMAIN)
        assert is_demo_tenant(demo, cipher)
        assert CustomersRepository(db_session, demo.id).count() == 2
        product = ProductsRepository(db_session, demo.id).get_by_shopify_id("2001")
        assert product.total_sales == Decimal("29.99")


class TestRepositories:
    """Tests for tenant scoping and natural-key upserts."""

    def test_tenant_id_is_required(self, db_session):
        with pytest.raises(ValueError):
            CustomersRepository(db_session, "")

    def test_upsert_ignores_tenant_id_in_fields(self, db_session, tenant, make_tenant):
        other = make_tenant()
        repo = CustomersRepository(db_session, tenant.id)

        customer, inserted = repo.upsert_by_shopify_id("1", {"tenant_id": other.id, "email": "a@x.com"})

        assert inserted is True
        assert customer.tenant_id == tenant.id
        assert CustomersRepository(db_session, other.id).count() == 0

    def test_upsert_reports_insert_then_update(self, db_session, tenant):
        repo = ProductsRepository(db_session, tenant.id)

        _, first = repo.upsert_by_shopify_id("10", {"title": "Mug"})
        product, second = repo.upsert_by_shopify_id("10", {"title": "Big Mug"})

        assert (first, second) == (True, False)
        assert product.title == "Big Mug"
        assert repo.count() == 1

    def test_lookup_never_crosses_tenants(self, db_session, tenant, make_tenant):
        other = make_tenant()
        CustomersRepository(db_session, other.id).upsert_by_shopify_id("1", {"email": "a@x.com"})

        assert CustomersRepository(db_session, tenant.id).get_by_shopify_id("1") is None
        assert CustomersRepository(db_session, tenant.id).map_ids_by_shopify_id(["1"]) == {}

    def test_sum_line_item_prices_without_items(self, db_session, tenant):
        product, _ = ProductsRepository(db_session, tenant.id).upsert_by_shopify_id("10", {"title": "Mug"})

        assert OrdersRepository(db_session, tenant.id).sum_line_item_prices(product.id) == Decimal("0.00")

    def test_duplicate_shop_domain(self, db_session, tenant):
        with pytest.raises(DuplicateShopDomainError):
            TenantsRepository(db_session).create(
                shop_domain=tenant.shop_domain,
                access_token_encrypted="x",
                name="Dup",
            )
