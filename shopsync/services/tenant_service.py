"""
Tenant onboarding and management.

A tenant is created only after one successful authenticated request
against the store, and its access token is stored encrypted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from shopsync.config.settings import IngestionSettings
from shopsync.integrations.shopify.client import (
    ShopifyClient,
    get_shopify_client,
    normalize_shop_domain,
)
from shopsync.integrations.shopify.models import ConnectionTestResult
from shopsync.models.tenant import Tenant, DEMO_ACCESS_TOKEN
from shopsync.platform.secrets import CredentialCipher, redact_secrets
from shopsync.repositories.customers import CustomersRepository
from shopsync.repositories.orders import OrdersRepository
from shopsync.repositories.products import ProductsRepository
from shopsync.repositories.tenants import TenantsRepository, DuplicateShopDomainError
from shopsync.services.errors import TenantNotFoundError

logger = logging.getLogger(__name__)


class TenantServiceError(Exception):
    """Base exception for tenant service errors."""
    pass


class DuplicateTenantError(TenantServiceError):
    """A tenant with the same shop domain already exists."""

    def __init__(self, shop_domain: str, tenant_id: Optional[str] = None):
        super().__init__(f"Tenant with shop domain {shop_domain} already exists")
        self.shop_domain = shop_domain
        self.tenant_id = tenant_id


class TenantConnectionError(TenantServiceError):
    """The store rejected or did not answer the connection test."""

    def __init__(self, result: ConnectionTestResult):
        super().__init__(
            result.error
            or "Failed to connect to Shopify store. Please check your credentials."
        )
        self.result = result
        self.reason = result.reason
        self.status = result.status


@dataclass
class TenantInfo:
    """Tenant view without credentials."""

    id: str
    shop_domain: str
    name: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "shop_domain": self.shop_domain,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "counts": dict(self.counts),
        }


def is_demo_tenant(tenant: Tenant, cipher: CredentialCipher) -> bool:
    """Seeded demo tenants carry a placeholder token and cannot be synced."""
    return cipher.decrypt(tenant.access_token_encrypted) == DEMO_ACCESS_TOKEN


class TenantService:
    """Onboarding, listing and updating tenants."""

    def __init__(
        self,
        db_session: Session,
        cipher: CredentialCipher,
        client_factory: Optional[Callable[..., ShopifyClient]] = None,
        settings: Optional[IngestionSettings] = None,
    ):
        self.db = db_session
        self.cipher = cipher
        self.settings = settings or IngestionSettings()
        self._client_factory = client_factory or get_shopify_client
        self._repo = TenantsRepository(db_session)

    async def test_connection(self, shop_domain: str, access_token: str) -> ConnectionTestResult:
        async with self._client_factory(shop_domain, access_token, self.settings) as client:
            return await client.test_connection()

    def _counts(self, tenant_id: str) -> Dict[str, int]:
        return {
            "customers": CustomersRepository(self.db, tenant_id).count(),
            "orders": OrdersRepository(self.db, tenant_id).count(),
            "products": ProductsRepository(self.db, tenant_id).count(),
        }

    def _to_info(self, tenant: Tenant, with_counts: bool = True) -> TenantInfo:
        return TenantInfo(
            id=tenant.id,
            shop_domain=tenant.shop_domain,
            name=tenant.name,
            is_active=tenant.is_active,
            created_at=tenant.created_at,
            updated_at=tenant.updated_at,
            counts=self._counts(tenant.id) if with_counts else {},
        )

    async def create_tenant(self, shop_domain: str, access_token: str, name: str) -> TenantInfo:
        """
        Onboard a store.

        Raises:
            ValueError: If a required field is blank
            TenantConnectionError: If the connection test fails
            DuplicateTenantError: If the shop domain is already onboarded
        """
        if not shop_domain or not access_token or not name:
            raise ValueError("Missing required fields: shop_domain, access_token, name")

        shop_domain = normalize_shop_domain(shop_domain)

        result = await self.test_connection(shop_domain, access_token)
        if not result.success:
            logger.warning(
                "Tenant onboarding rejected: connection test failed",
                extra=redact_secrets({
                    "shop_domain": shop_domain,
                    "reason": result.reason.value,
                    "status": result.status,
                    "error": result.error,
                }),
            )
            raise TenantConnectionError(result)

        existing = self._repo.get_by_shop_domain(shop_domain)
        if existing is not None:
            raise DuplicateTenantError(shop_domain, tenant_id=existing.id)

        try:
            tenant = self._repo.create(
                shop_domain=shop_domain,
                access_token_encrypted=self.cipher.encrypt(access_token),
                name=name,
            )
        except DuplicateShopDomainError:
            raise DuplicateTenantError(shop_domain)

        return self._to_info(tenant, with_counts=False)

    def list_tenants(self) -> List[TenantInfo]:
        """All tenants, newest first, with entity counts."""
        return [self._to_info(tenant) for tenant in self._repo.get_all()]

    def get_tenant(self, tenant_id: str) -> TenantInfo:
        """
        Raises:
            TenantNotFoundError: Unknown tenant
        """
        tenant = self._repo.get_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return self._to_info(tenant)

    def get_tenant_model(self, tenant_id: str) -> Tenant:
        tenant = self._repo.get_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant

    def update_tenant(
        self,
        tenant_id: str,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
        access_token: Optional[str] = None,
    ) -> TenantInfo:
        """
        Partially update a tenant. Arguments left as None are unchanged.

        A new access token replaces the stored one; it is not tested.

        Raises:
            TenantNotFoundError: Unknown tenant
        """
        tenant = self.get_tenant_model(tenant_id)

        changes: Dict[str, Any] = {}
        if name is not None:
            changes["name"] = name
        if is_active is not None:
            changes["is_active"] = is_active
        if access_token is not None:
            changes["access_token_encrypted"] = self.cipher.encrypt(access_token)

        if changes:
            tenant = self._repo.update(tenant, changes)

        return self._to_info(tenant, with_counts=False)
