"""
Tests for the fixed-interval sync scheduler.

Tests cover:
- One cycle over active tenants with per-tenant failure isolation
- Demo and already-syncing tenants skipped
- Main loop shutdown and cycle-level error handling
"""

import pytest
from unittest.mock import AsyncMock

from shopsync.integrations.shopify.exceptions import ShopifyConnectionError
from shopsync.models.tenant import DEMO_ACCESS_TOKEN
from shopsync.repositories.customers import CustomersRepository
from shopsync.services.ingestion_service import ShopifyIngestionService
from shopsync.workers.sync_scheduler import SchedulerCycleResult, SyncScheduler


@pytest.fixture
def make_scheduler(session_factory, settings, cipher, sync_guard, fixed_now):
    """Scheduler whose services share the test cipher, guard and clock."""

    def _make(client_factory, interval_seconds: int = 3600) -> SyncScheduler:
        def service_factory(session):
            return ShopifyIngestionService(
                session,
                settings=settings,
                client_factory=client_factory,
                cipher=cipher,
                clock=lambda: fixed_now,
                sync_guard=sync_guard,
            )

        return SyncScheduler(
            session_factory=session_factory,
            service_factory=service_factory,
            interval_seconds=interval_seconds,
        )

    return _make


class TestSchedulerCycle:
    """Tests for run_once."""

    @pytest.mark.asyncio
    async def test_syncs_every_active_tenant(
        self, make_scheduler, client_factory, fake_shopify, payloads, make_tenant, db_session
    ):
        first = make_tenant()
        second = make_tenant()
        fake_shopify.data["customers"] = [payloads.customer(1001)]
        scheduler = make_scheduler(client_factory)

        result = await scheduler.run_once()

        assert result.tenants == 2
        assert sorted(result.succeeded) == sorted([first.id, second.id])
        assert result.failed == {}
        for tenant in (first, second):
            assert CustomersRepository(db_session, tenant.id).count() == 1
        assert scheduler.stats.cycles == 1
        assert scheduler.stats.tenant_syncs == 2

    @pytest.mark.asyncio
    async def test_failing_tenant_does_not_stop_cycle(
        self, make_scheduler, fake_shopify, payloads, make_tenant, db_session
    ):
        broken = make_tenant(shop_domain="broken.myshopify.com")
        healthy = make_tenant(shop_domain="healthy.myshopify.com")
        fake_shopify.data["customers"] = [payloads.customer(1001)]

        def client_factory(shop_domain, access_token, settings=None):
            if shop_domain == "broken.myshopify.com":
                raise ShopifyConnectionError("Connection error: unreachable")
            return fake_shopify

        scheduler = make_scheduler(client_factory)

        result = await scheduler.run_once()

        assert result.succeeded == [healthy.id]
        assert list(result.failed) == [broken.id]
        assert "customers" in result.failed[broken.id]
        assert CustomersRepository(db_session, healthy.id).count() == 1
        assert scheduler.stats.tenant_failures == 1

    @pytest.mark.asyncio
    async def test_undecryptable_token_fails_only_that_tenant(
        self, make_scheduler, client_factory, fake_shopify, payloads, make_tenant, db_session
    ):
        corrupt = make_tenant(shop_domain="corrupt.myshopify.com")
        corrupt.access_token_encrypted = "not-a-fernet-token"
        db_session.commit()
        healthy = make_tenant(shop_domain="healthy.myshopify.com")
        fake_shopify.data["customers"] = [payloads.customer(1001)]
        scheduler = make_scheduler(client_factory)

        result = await scheduler.run_once()

        assert result.succeeded == [healthy.id]
        assert list(result.failed) == [corrupt.id]
        assert "decrypt" in result.failed[corrupt.id]
        assert CustomersRepository(db_session, healthy.id).count() == 1
        assert {domain for domain, _ in fake_shopify.opened_with} == {"healthy.myshopify.com"}

    @pytest.mark.asyncio
    async def test_inactive_tenants_are_not_synced(
        self, make_scheduler, client_factory, fake_shopify, make_tenant
    ):
        active = make_tenant(shop_domain="active.myshopify.com")
        make_tenant(shop_domain="paused.myshopify.com", is_active=False)

        result = await make_scheduler(client_factory).run_once()

        assert result.tenants == 1
        assert result.succeeded == [active.id]
        assert {domain for domain, _ in fake_shopify.opened_with} == {"active.myshopify.com"}

    @pytest.mark.asyncio
    async def test_demo_tenant_is_skipped(
        self, make_scheduler, client_factory, fake_shopify, make_tenant
    ):
        demo = make_tenant(shop_domain="demo-store.myshopify.com", access_token=DEMO_ACCESS_TOKEN)

        result = await make_scheduler(client_factory).run_once()

        assert result.skipped == [demo.id]
        assert result.succeeded == []
        assert fake_shopify.opened_with == []

    @pytest.mark.asyncio
    async def test_tenant_already_syncing_is_skipped(
        self, make_scheduler, client_factory, make_tenant, sync_guard
    ):
        tenant = make_tenant()
        sync_guard.acquire(tenant.id)

        result = await make_scheduler(client_factory).run_once()

        assert result.skipped == [tenant.id]
        assert result.failed == {}

    @pytest.mark.asyncio
    async def test_no_tenants(self, make_scheduler, client_factory):
        result = await make_scheduler(client_factory).run_once()

        assert result.to_dict() == {"tenants": 0, "succeeded": 0, "failed": 0, "skipped": 0}


class TestSchedulerLoop:
    """Tests for run and stop."""

    def test_interval_must_be_positive(self, make_scheduler, client_factory):
        with pytest.raises(ValueError):
            make_scheduler(client_factory, interval_seconds=0)

    @pytest.mark.asyncio
    async def test_stop_ends_loop_after_current_cycle(self, make_scheduler, client_factory):
        scheduler = make_scheduler(client_factory)

        async def cycle():
            scheduler.stop()
            return SchedulerCycleResult()

        scheduler.run_once = AsyncMock(side_effect=cycle)

        await scheduler.run()

        assert scheduler.run_once.await_count == 1
        assert scheduler.stopped

    @pytest.mark.asyncio
    async def test_cycle_error_is_counted_and_loop_survives(self, make_scheduler, client_factory):
        scheduler = make_scheduler(client_factory)

        async def cycle():
            scheduler.stop()
            raise RuntimeError("database unavailable")

        scheduler.run_once = AsyncMock(side_effect=cycle)

        await scheduler.run()

        assert scheduler.stats.errors == 1

    @pytest.mark.asyncio
    async def test_stopped_scheduler_does_not_run(self, make_scheduler, client_factory):
        scheduler = make_scheduler(client_factory)
        scheduler.run_once = AsyncMock()
        scheduler.stop()

        await scheduler.run()

        scheduler.run_once.assert_not_awaited()
