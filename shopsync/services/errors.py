"""
Exceptions raised by the ingestion pipeline.

Upstream fetch failures are ShopifyError subclasses (see
shopsync.integrations.shopify.exceptions); everything else the pipeline
raises derives from IngestionError.
"""

from typing import Any, Dict, Optional


class IngestionError(Exception):
    """Base exception for ingestion pipeline errors."""
    pass


class TenantNotFoundError(IngestionError):
    """Tenant id does not resolve to a Tenant."""

    def __init__(self, tenant_id: str):
        super().__init__(f"Tenant not found: {tenant_id}")
        self.tenant_id = tenant_id


class RecordTransformError(IngestionError):
    """An upstream record cannot be mapped to local fields."""

    def __init__(
        self,
        message: str,
        entity_type: Optional[str] = None,
        record_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.entity_type = entity_type
        self.record_id = record_id

    def __repr__(self) -> str:
        return (
            f"RecordTransformError(message={self.message!r}, "
            f"entity_type={self.entity_type!r}, record_id={self.record_id!r})"
        )


class StoreWriteError(IngestionError):
    """A write against the persistent store failed and was rolled back."""

    def __init__(self, message: str, entity_type: Optional[str] = None):
        super().__init__(message)
        self.entity_type = entity_type


class SyncInProgressError(IngestionError):
    """Another sync for the same tenant is already running."""

    def __init__(self, tenant_id: str):
        super().__init__(f"A sync is already in progress for tenant {tenant_id}")
        self.tenant_id = tenant_id


class AggregateSyncError(IngestionError):
    """
    One or more entity syncs of an aggregate sync failed.

    results holds the summaries of the entity syncs that succeeded;
    failures maps entity type to error text for those that did not.
    """

    def __init__(
        self,
        tenant_id: str,
        results: Dict[str, Any],
        failures: Dict[str, str],
    ):
        failed = ", ".join(sorted(failures))
        super().__init__(f"Sync failed for tenant {tenant_id}: {failed}")
        self.tenant_id = tenant_id
        self.results = results
        self.failures = failures

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, **self.results, "failures": dict(self.failures)}
