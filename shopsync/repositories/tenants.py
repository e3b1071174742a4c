"""
Tenants repository.

Tenants are global (not tenant-scoped): they are the scope.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.orm import Session

from shopsync.models.tenant import Tenant
from shopsync.services.errors import StoreWriteError

logger = logging.getLogger(__name__)


class DuplicateShopDomainError(StoreWriteError):
    """A tenant with the same shop domain already exists."""
    pass


class TenantsRepository:
    """Repository for Tenant rows."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get_by_id(self, tenant_id: str) -> Optional[Tenant]:
        return self.db.query(Tenant).filter(Tenant.id == tenant_id).first()

    def get_by_shop_domain(self, shop_domain: str) -> Optional[Tenant]:
        return self.db.query(Tenant).filter(Tenant.shop_domain == shop_domain).first()

    def get_all(self, active_only: bool = False) -> List[Tenant]:
        """
        Get all tenants, newest first.

        Args:
            active_only: Only return tenants eligible for scheduled sync
        """
        query = self.db.query(Tenant)
        if active_only:
            query = query.filter(Tenant.is_active == True)  # noqa: E712
        return query.order_by(Tenant.created_at.desc()).all()

    def create(
        self,
        shop_domain: str,
        access_token_encrypted: str,
        name: str,
        is_active: bool = True,
    ) -> Tenant:
        """
        Persist a new tenant.

        Raises:
            DuplicateShopDomainError: If shop_domain is already onboarded
            StoreWriteError: On any other store failure
        """
        tenant = Tenant(
            shop_domain=shop_domain,
            access_token_encrypted=access_token_encrypted,
            name=name,
            is_active=is_active,
        )
        self.db.add(tenant)

        try:
            self.db.commit()
            self.db.refresh(tenant)
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Tenant shop domain already exists", extra={"shop_domain": shop_domain})
            raise DuplicateShopDomainError(
                f"Tenant with shop domain {shop_domain} already exists", entity_type="Tenant"
            ) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to create tenant", extra={"shop_domain": shop_domain, "error": str(e)})
            raise StoreWriteError(f"Failed to create tenant: {e}", entity_type="Tenant") from e

        logger.info("Tenant created", extra={"tenant_id": tenant.id, "shop_domain": shop_domain})
        return tenant

    def update(self, tenant: Tenant, changes: Dict[str, Any]) -> Tenant:
        """
        Apply changes to a tenant and commit.

        Raises:
            StoreWriteError: If the commit fails
        """
        for key, value in changes.items():
            setattr(tenant, key, value)

        try:
            self.db.commit()
            self.db.refresh(tenant)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to update tenant", extra={"tenant_id": tenant.id, "error": str(e)})
            raise StoreWriteError(f"Failed to update tenant: {e}", entity_type="Tenant") from e

        logger.info(
            "Tenant updated",
            extra={"tenant_id": tenant.id, "fields": sorted(changes)},
        )
        return tenant
