"""
Sync scheduler - long-lived process running the full Shopify sync for
every active tenant at a fixed interval.

Each cycle:
1. Loads the active tenants with a fresh database session
2. Runs sync_all for each tenant, one tenant at a time
3. Logs per-tenant failures and moves on to the next tenant

CONSTRAINTS:
- Single process, no job queue
- A tenant failure never stops the cycle or the loop
- Graceful shutdown on SIGTERM/SIGINT

Usage:
    python -m shopsync.workers.sync_scheduler
"""

import sys
import signal
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from dotenv import load_dotenv
from sqlalchemy.orm import Session, sessionmaker

from shopsync.models.tenant import DEMO_ACCESS_TOKEN
from shopsync.repositories.tenants import TenantsRepository
from shopsync.services.errors import SyncInProgressError
from shopsync.services.ingestion_service import ShopifyIngestionService

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 6 * 60 * 60


@dataclass
class SchedulerCycleResult:
    """Outcome of one scheduler cycle."""

    tenants: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "tenants": self.tenants,
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }


@dataclass
class SchedulerStats:
    """Cumulative statistics for the scheduler process lifetime."""

    cycles: int = 0
    tenant_syncs: int = 0
    tenant_failures: int = 0
    errors: int = 0
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> dict:
        uptime = (
            datetime.now(timezone.utc) - self.started_at
        ).total_seconds()
        return {
            "cycles": self.cycles,
            "tenant_syncs": self.tenant_syncs,
            "tenant_failures": self.tenant_failures,
            "errors": self.errors,
            "uptime_seconds": round(uptime, 2),
        }


class SyncScheduler:
    """
    Fixed-interval driver for ShopifyIngestionService.sync_all.

    Args:
        session_factory: Returns a fresh Session; one is used per cycle
        service_factory: Builds the ingestion service for a session
        interval_seconds: Pause between cycles
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        service_factory: Callable[[Session], ShopifyIngestionService],
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._session_factory = session_factory
        self._service_factory = service_factory
        self.interval_seconds = interval_seconds
        self.stats = SchedulerStats()
        self._shutdown_event = asyncio.Event()

    def stop(self) -> None:
        self._shutdown_event.set()

    @property
    def stopped(self) -> bool:
        return self._shutdown_event.is_set()

    async def run_once(self) -> SchedulerCycleResult:
        """Run sync_all for every active tenant."""
        result = SchedulerCycleResult()
        session = self._session_factory()

        try:
            service = self._service_factory(session)
            tenants = [
                (tenant.id, tenant.shop_domain, tenant.access_token_encrypted)
                for tenant in TenantsRepository(session).get_all(active_only=True)
            ]
            result.tenants = len(tenants)

            for tenant_id, shop_domain, token_encrypted in tenants:
                try:
                    if service.cipher.decrypt(token_encrypted) == DEMO_ACCESS_TOKEN:
                        result.skipped.append(tenant_id)
                        continue

                    await service.sync_all(tenant_id)
                    result.succeeded.append(tenant_id)
                except SyncInProgressError:
                    result.skipped.append(tenant_id)
                    logger.info(
                        "sync_scheduler.tenant_skipped",
                        extra={"tenant_id": tenant_id, "shop_domain": shop_domain},
                    )
                except Exception as e:
                    session.rollback()
                    result.failed[tenant_id] = str(e)
                    logger.exception(
                        "sync_scheduler.tenant_failed",
                        extra={"tenant_id": tenant_id, "shop_domain": shop_domain},
                    )
        finally:
            session.close()

        self.stats.cycles += 1
        self.stats.tenant_syncs += len(result.succeeded)
        self.stats.tenant_failures += len(result.failed)

        logger.info(
            "sync_scheduler.cycle_completed",
            extra={"cycle": self.stats.cycles, **result.to_dict()},
        )
        return result

    async def run(self) -> None:
        """
        Main loop. Runs until stop() is called or a shutdown signal arrives.

        A cycle that fails as a whole (e.g. the database is unreachable)
        is logged and the loop carries on.
        """
        logger.info(
            "Sync scheduler starting",
            extra={"interval_seconds": self.interval_seconds},
        )

        while not self._shutdown_event.is_set():
            try:
                await self.run_once()
            except Exception:
                self.stats.errors += 1
                logger.exception(
                    "sync_scheduler.cycle_error",
                    extra={"cycle": self.stats.cycles},
                )

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self.interval_seconds,
                )
            except asyncio.TimeoutError:
                pass  # Normal: timeout = no shutdown, continue loop

        logger.info("Sync scheduler stopped", extra=self.stats.to_dict())

    def install_signal_handlers(self) -> None:
        def _handle_signal(sig, _frame):
            logger.info("Received signal %s, shutting down gracefully", sig)
            self.stop()

        signal.signal(signal.SIGTERM, _handle_signal)
        signal.signal(signal.SIGINT, _handle_signal)


def build_scheduler(settings=None, session_factory: Optional[sessionmaker] = None) -> SyncScheduler:
    """Wire a scheduler from settings with real collaborators."""
    from shopsync.config.settings import load_settings
    from shopsync.database.session import create_db_engine, create_session_factory
    from shopsync.platform.secrets import CredentialCipher
    from shopsync.services.sync_guard import TenantSyncGuard

    settings = settings or load_settings()
    if session_factory is None:
        session_factory = create_session_factory(create_db_engine(settings.database_url))

    cipher = CredentialCipher(settings.encryption_key)
    guard = TenantSyncGuard()

    def service_factory(session: Session) -> ShopifyIngestionService:
        return ShopifyIngestionService(
            session, settings=settings, cipher=cipher, sync_guard=guard
        )

    return SyncScheduler(
        session_factory=session_factory,
        service_factory=service_factory,
        interval_seconds=settings.sync_interval_seconds,
    )


async def run_scheduler() -> None:
    scheduler = build_scheduler()
    scheduler.install_signal_handlers()
    await scheduler.run()


def main():
    """Entry point for running the scheduler from command line."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        asyncio.run(run_scheduler())
        sys.exit(0)
    except Exception as e:
        logger.error("Sync scheduler crashed", extra={"error": str(e)})
        sys.exit(1)


if __name__ == "__main__":
    main()
