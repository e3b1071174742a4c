"""
Single-flight guard for tenant syncs.

At most one sync runs per tenant at a time. A second request for a tenant
whose sync is still in flight is rejected rather than queued.

Usage:
    guard = TenantSyncGuard()

    async with guard.hold(tenant_id):
        await service.sync_all(tenant_id)
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Set

from shopsync.services.errors import SyncInProgressError

logger = logging.getLogger(__name__)


class TenantSyncGuard:
    """
    Tracks in-flight tenant syncs within one process.

    All access happens on the event loop thread, so a plain set suffices:
    the check and the add in acquire() run without a suspension point.
    """

    def __init__(self):
        self._in_flight: Set[str] = set()

    def is_running(self, tenant_id: str) -> bool:
        return tenant_id in self._in_flight

    def acquire(self, tenant_id: str) -> None:
        """
        Mark tenant_id as syncing.

        Raises:
            SyncInProgressError: If a sync for tenant_id is already in flight
        """
        if tenant_id in self._in_flight:
            logger.warning("Sync rejected: already in progress", extra={"tenant_id": tenant_id})
            raise SyncInProgressError(tenant_id)
        self._in_flight.add(tenant_id)

    def release(self, tenant_id: str) -> None:
        self._in_flight.discard(tenant_id)

    @asynccontextmanager
    async def hold(self, tenant_id: str) -> AsyncIterator[None]:
        self.acquire(tenant_id)
        try:
            yield
        finally:
            self.release(tenant_id)
