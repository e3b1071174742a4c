"""
Tenant onboarding and management routes.

A store is onboarded only after its credentials pass a live connection
test. Responses never include the access token.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from shopsync.services.errors import StoreWriteError, TenantNotFoundError
from shopsync.services.tenant_service import (
    DuplicateTenantError,
    TenantConnectionError,
    TenantInfo,
    TenantService,
)
from shopsync.api.dependencies import get_tenant_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tenants", tags=["tenants"])


# Request/Response models

class CreateTenantRequest(BaseModel):
    """Request to onboard a Shopify store."""
    shop_domain: str = Field(..., min_length=1, description="e.g. mystore.myshopify.com")
    access_token: str = Field(..., min_length=1, description="Admin API access token")
    name: str = Field(..., min_length=1)


class UpdateTenantRequest(BaseModel):
    """Partial tenant update; omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None
    access_token: Optional[str] = Field(None, min_length=1)


class TenantResponse(BaseModel):
    id: str
    shop_domain: str
    name: str
    is_active: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    counts: Dict[str, int] = Field(default_factory=dict)


class TenantEnvelope(BaseModel):
    message: Optional[str] = None
    tenant: TenantResponse


class TenantListResponse(BaseModel):
    tenants: List[TenantResponse]


def _to_response(info: TenantInfo) -> TenantResponse:
    return TenantResponse(**info.to_dict())


# Routes

@router.post("", response_model=TenantEnvelope, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    body: CreateTenantRequest,
    service: TenantService = Depends(get_tenant_service),
):
    """Onboard a store after a successful connection test."""
    try:
        info = await service.create_tenant(
            shop_domain=body.shop_domain,
            access_token=body.access_token,
            name=body.name,
        )
    except TenantConnectionError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": str(e),
                "reason": e.reason.value,
                "details": f"HTTP {e.status}" if e.status else "Connection failed",
            },
        )
    except DuplicateTenantError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": str(e), "tenant_id": e.tenant_id},
        )
    except StoreWriteError as e:
        logger.error("Failed to create tenant", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create tenant",
        )

    return TenantEnvelope(message="Tenant created successfully", tenant=_to_response(info))


@router.get("", response_model=TenantListResponse)
async def list_tenants(service: TenantService = Depends(get_tenant_service)):
    """All tenants, newest first, with entity counts."""
    return TenantListResponse(tenants=[_to_response(info) for info in service.list_tenants()])


@router.get("/{tenant_id}", response_model=TenantEnvelope)
async def get_tenant(tenant_id: str, service: TenantService = Depends(get_tenant_service)):
    try:
        info = service.get_tenant(tenant_id)
    except TenantNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    return TenantEnvelope(tenant=_to_response(info))


@router.put("/{tenant_id}", response_model=TenantEnvelope)
async def update_tenant(
    tenant_id: str,
    body: UpdateTenantRequest,
    service: TenantService = Depends(get_tenant_service),
):
    """Rename, toggle activation or rotate the access token."""
    try:
        info = service.update_tenant(
            tenant_id,
            name=body.name,
            is_active=body.is_active,
            access_token=body.access_token,
        )
    except TenantNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")
    except StoreWriteError as e:
        logger.error("Failed to update tenant", extra={"tenant_id": tenant_id, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update tenant",
        )

    return TenantEnvelope(message="Tenant updated successfully", tenant=_to_response(info))
