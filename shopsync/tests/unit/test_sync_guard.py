"""
Unit tests for the per-tenant single-flight guard.
"""

import pytest

from shopsync.services.errors import SyncInProgressError
from shopsync.services.sync_guard import TenantSyncGuard


class TestTenantSyncGuard:

    def test_second_acquire_is_rejected(self):
        guard = TenantSyncGuard()
        guard.acquire("t1")

        with pytest.raises(SyncInProgressError) as exc_info:
            guard.acquire("t1")

        assert exc_info.value.tenant_id == "t1"

    def test_tenants_are_independent(self):
        guard = TenantSyncGuard()
        guard.acquire("t1")
        guard.acquire("t2")

        assert guard.is_running("t1") and guard.is_running("t2")

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self):
        guard = TenantSyncGuard()

        with pytest.raises(RuntimeError):
            async with guard.hold("t1"):
                assert guard.is_running("t1")
                raise RuntimeError("boom")

        assert not guard.is_running("t1")

    def test_release_of_idle_tenant_is_noop(self):
        guard = TenantSyncGuard()

        guard.release("t1")

        assert not guard.is_running("t1")
