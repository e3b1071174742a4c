"""
Root test configuration and fixtures.

Provides:
- db_engine / session_factory / db_session: SQLite in-memory database
- cipher / settings: credential cipher and settings with a fixed test key
- make_tenant: factory persisting tenants with an encrypted token
- payloads: builders for raw Shopify REST records
- fake_shopify / client_factory: in-memory stand-in for ShopifyClient
- ingestion_service: service wired to the fakes with a fixed clock
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopsync.config.settings import IngestionSettings
from shopsync.db_base import Base
from shopsync.integrations.shopify.models import ConnectionTestResult
from shopsync.models.tenant import Tenant
from shopsync.platform.secrets import CredentialCipher
from shopsync.services.ingestion_service import ShopifyIngestionService
from shopsync.services.sync_guard import TenantSyncGuard

TEST_ENCRYPTION_KEY = "test-encryption-key-for-shopsync-suite"
TEST_ACCESS_TOKEN = "shpat_test_token_0123456789"

# Frozen "now" used for created/updated classification
FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def db_engine():
    """
    Fresh SQLite in-memory database per test.

    StaticPool keeps the single in-memory connection alive across sessions.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from shopsync import models  # noqa: F401 - registers tables

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Configuration and credentials
# =============================================================================

@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(TEST_ENCRYPTION_KEY)


@pytest.fixture
def settings() -> IngestionSettings:
    return IngestionSettings(
        database_url="sqlite:///:memory:",
        encryption_key=TEST_ENCRYPTION_KEY,
        allowed_origins=["http://localhost:5173"],
    )


@pytest.fixture
def make_tenant(db_session, cipher):
    """
    Factory fixture persisting a tenant.

    Usage:
        tenant = make_tenant(shop_domain="other.myshopify.com")
    """
    counter = {"n": 0}

    def _make(
        shop_domain: Optional[str] = None,
        access_token: str = TEST_ACCESS_TOKEN,
        name: str = "Test Store",
        is_active: bool = True,
    ) -> Tenant:
        counter["n"] += 1
        tenant = Tenant(
            shop_domain=shop_domain or f"test-store-{counter['n']}.myshopify.com",
            access_token_encrypted=cipher.encrypt(access_token),
            name=name,
            is_active=is_active,
        )
        db_session.add(tenant)
        db_session.commit()
        db_session.refresh(tenant)
        return tenant

    return _make


@pytest.fixture
def tenant(make_tenant) -> Tenant:
    return make_tenant(shop_domain="test-store.myshopify.com")


# =============================================================================
# Raw Shopify payloads
# =============================================================================

class ShopifyPayloads:
    """Builders for raw Shopify REST records. Defaults are old records."""

    OLD = "2024-01-15T10:00:00Z"

    def customer(self, id: Any = 1001, **overrides) -> Dict[str, Any]:
        record = {
            "id": id,
            "email": f"customer{id}@example.com",
            "first_name": "Jane",
            "last_name": "Doe",
            "total_spent": "125.50",
            "orders_count": 3,
            "created_at": self.OLD,
            "updated_at": self.OLD,
        }
        record.update(overrides)
        return record

    def product(self, id: Any = 2001, **overrides) -> Dict[str, Any]:
        record = {
            "id": id,
            "title": f"Product {id}",
            "handle": f"product-{id}",
            "body_html": "<p>Great product</p>",
            "vendor": "Acme",
            "product_type": "Apparel",
            "status": "active",
            "created_at": self.OLD,
            "updated_at": self.OLD,
        }
        record.update(overrides)
        return record

    def line_item(self, id: Any = 4001, product_id: Any = 2001, price: str = "10.00", **overrides) -> Dict[str, Any]:
        record = {
            "id": id,
            "product_id": product_id,
            "title": f"Item {id}",
            "quantity": 1,
            "price": price,
        }
        record.update(overrides)
        return record

    def order(
        self,
        id: Any = 3001,
        customer_id: Any = 1001,
        line_items: Optional[List[Dict[str, Any]]] = None,
        **overrides,
    ) -> Dict[str, Any]:
        record = {
            "id": id,
            "order_number": 1000 + int(id) % 1000,
            "email": "buyer@example.com",
            "financial_status": "paid",
            "fulfillment_status": None,
            "subtotal_price": "20.00",
            "total_tax": "2.00",
            "total_price": "22.00",
            "currency": "EUR",
            "created_at": self.OLD,
            "updated_at": self.OLD,
            "customer": {"id": customer_id} if customer_id is not None else None,
            "line_items": line_items if line_items is not None else [self.line_item()],
        }
        record.update(overrides)
        return record

    def created_ago(self, seconds: int) -> str:
        return iso(FIXED_NOW - timedelta(seconds=seconds))


@pytest.fixture
def payloads() -> ShopifyPayloads:
    return ShopifyPayloads()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


# =============================================================================
# Shopify client stand-in
# =============================================================================

class FakeShopifyClient:
    """
    In-memory replacement for ShopifyClient.

    data holds the collections returned by fetch_*; errors maps an entity
    type to the exception its fetch raises; delays holds per-entity sleeps
    to control interleaving under asyncio.gather.
    """

    def __init__(self):
        self.data: Dict[str, List[Dict[str, Any]]] = {"customers": [], "orders": [], "products": []}
        self.errors: Dict[str, Exception] = {}
        self.delays: Dict[str, float] = {}
        self.connection_result = ConnectionTestResult(success=True, shop_name="Test Store")
        self.fetches: List[str] = []
        self.opened_with: List[tuple] = []
        self.closed = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed += 1

    async def _fetch(self, entity_type: str) -> List[Dict[str, Any]]:
        self.fetches.append(entity_type)
        await asyncio.sleep(self.delays.get(entity_type, 0))
        if entity_type in self.errors:
            raise self.errors[entity_type]
        return list(self.data[entity_type])

    async def fetch_customers(self):
        return await self._fetch("customers")

    async def fetch_orders(self):
        return await self._fetch("orders")

    async def fetch_products(self):
        return await self._fetch("products")

    async def test_connection(self):
        return self.connection_result


@pytest.fixture
def fake_shopify() -> FakeShopifyClient:
    return FakeShopifyClient()


@pytest.fixture
def client_factory(fake_shopify):
    def _factory(shop_domain, access_token, settings=None):
        fake_shopify.opened_with.append((shop_domain, access_token))
        return fake_shopify
    return _factory


@pytest.fixture
def sync_guard() -> TenantSyncGuard:
    return TenantSyncGuard()


@pytest.fixture
def ingestion_service(db_session, settings, client_factory, cipher, sync_guard) -> ShopifyIngestionService:
    return ShopifyIngestionService(
        db_session,
        settings=settings,
        client_factory=client_factory,
        cipher=cipher,
        clock=lambda: FIXED_NOW,
        sync_guard=sync_guard,
    )
