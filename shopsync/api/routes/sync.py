"""
Sync API routes for triggering Shopify data syncs.

POST /api/tenants/{tenant_id}/sync runs the full sync in a background task
and returns immediately. The per-entity routes run the sync inline and
return its summary.

Demo tenants carry placeholder credentials and are rejected with 400.
Tenants whose stored token cannot be decrypted are rejected with 422.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from shopsync.api.dependencies import (
    get_cipher,
    get_db_session,
    get_ingestion_service,
)
from shopsync.integrations.shopify.exceptions import ShopifyError
from shopsync.models.tenant import Tenant
from shopsync.platform.secrets import CredentialCipher, EncryptionError
from shopsync.repositories.tenants import TenantsRepository
from shopsync.services.errors import (
    IngestionError,
    SyncInProgressError,
    TenantNotFoundError,
)
from shopsync.services.ingestion_service import ShopifyIngestionService
from shopsync.services.tenant_service import is_demo_tenant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tenants", tags=["sync"])

DEMO_SYNC_MESSAGE = (
    "Cannot sync demo tenant. Demo tenant uses fake credentials and cannot "
    "connect to Shopify API. Use a real Shopify store for syncing data."
)

UNREADABLE_CREDENTIAL_MESSAGE = (
    "Stored Shopify credential cannot be decrypted. Update the tenant's "
    "access token before syncing."
)


# Request/Response models

class SyncSummaryResponse(BaseModel):
    success: bool
    total: int
    created: int
    updated: int


class EntitySyncResponse(BaseModel):
    message: str
    result: SyncSummaryResponse


class SyncStartedResponse(BaseModel):
    message: str
    tenant_id: str


def _load_syncable_tenant(db: Session, cipher: CredentialCipher, tenant_id: str) -> Tenant:
    tenant = TenantsRepository(db).get_by_id(tenant_id)
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    try:
        is_demo = is_demo_tenant(tenant, cipher)
    except EncryptionError:
        logger.error("Stored credential cannot be decrypted", extra={"tenant_id": tenant_id})
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": UNREADABLE_CREDENTIAL_MESSAGE},
        )
    if is_demo:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": DEMO_SYNC_MESSAGE, "is_demo": True},
        )
    return tenant


async def _run_full_sync_in_background(service_kwargs: Dict[str, Any], session_factory, tenant_id: str) -> None:
    session = session_factory()
    try:
        service = ShopifyIngestionService(session, **service_kwargs)
        result = await service.sync_all(tenant_id)
        logger.info("Background sync completed", extra={"tenant_id": tenant_id, "result": result})
    except Exception:
        logger.exception("Background sync failed", extra={"tenant_id": tenant_id})
    finally:
        session.close()


async def _run_entity_sync(
    entity_type: str,
    tenant_id: str,
    service: ShopifyIngestionService,
) -> EntitySyncResponse:
    runners = {
        "customers": service.sync_customers,
        "orders": service.sync_orders,
        "products": service.sync_products,
    }

    try:
        result = await runners[entity_type](tenant_id)
    except TenantNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    except SyncInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ShopifyError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": f"Failed to sync {entity_type}", "message": e.message},
        )
    except IngestionError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": f"Failed to sync {entity_type}", "message": str(e)},
        )

    return EntitySyncResponse(
        message=f"{entity_type.capitalize()} synced successfully",
        result=SyncSummaryResponse(**result),
    )


# Routes

@router.post(
    "/{tenant_id}/sync",
    response_model=SyncStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def trigger_full_sync(
    tenant_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db_session),
    cipher: CredentialCipher = Depends(get_cipher),
    service: ShopifyIngestionService = Depends(get_ingestion_service),
):
    """Start customers, orders and products sync for a tenant in the background."""
    _load_syncable_tenant(db, cipher, tenant_id)

    if request.app.state.sync_guard.is_running(tenant_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(SyncInProgressError(tenant_id)),
        )

    background_tasks.add_task(
        _run_full_sync_in_background,
        {
            "settings": service.settings,
            "client_factory": request.app.state.client_factory,
            "cipher": cipher,
            "sync_guard": request.app.state.sync_guard,
        },
        request.app.state.session_factory,
        tenant_id,
    )

    logger.info("Full sync scheduled", extra={"tenant_id": tenant_id})

    return SyncStartedResponse(
        message="Data sync started. This may take a few minutes.",
        tenant_id=tenant_id,
    )


@router.post("/{tenant_id}/sync/customers", response_model=EntitySyncResponse)
async def sync_customers(
    tenant_id: str,
    db: Session = Depends(get_db_session),
    cipher: CredentialCipher = Depends(get_cipher),
    service: ShopifyIngestionService = Depends(get_ingestion_service),
):
    _load_syncable_tenant(db, cipher, tenant_id)
    return await _run_entity_sync("customers", tenant_id, service)


@router.post("/{tenant_id}/sync/orders", response_model=EntitySyncResponse)
async def sync_orders(
    tenant_id: str,
    db: Session = Depends(get_db_session),
    cipher: CredentialCipher = Depends(get_cipher),
    service: ShopifyIngestionService = Depends(get_ingestion_service),
):
    _load_syncable_tenant(db, cipher, tenant_id)
    return await _run_entity_sync("orders", tenant_id, service)


@router.post("/{tenant_id}/sync/products", response_model=EntitySyncResponse)
async def sync_products(
    tenant_id: str,
    db: Session = Depends(get_db_session),
    cipher: CredentialCipher = Depends(get_cipher),
    service: ShopifyIngestionService = Depends(get_ingestion_service),
):
    _load_syncable_tenant(db, cipher, tenant_id)
    return await _run_entity_sync("products", tenant_id, service)
