"""
Base repository with strict tenant isolation enforcement.

CRITICAL: All database operations MUST include tenant_id.
No query can access data across tenants.
"""

import logging
from typing import TypeVar, Generic, Optional, List, Any, Dict, Tuple
from abc import ABC, abstractmethod

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from shopsync.db_base import Base
from shopsync.services.errors import StoreWriteError

logger = logging.getLogger(__name__)

# Type variable for repository models
T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T], ABC):
    """
    Base repository with mandatory tenant_id enforcement.

    All queries are automatically scoped by tenant_id. Rows mirrored from
    Shopify are addressed either by local id or by natural key
    (tenant_id, shopify_id).
    """

    def __init__(self, db_session: Session, tenant_id: str):
        """
        Initialize repository with tenant context.

        Args:
            db_session: SQLAlchemy database session
            tenant_id: Tenant identifier

        Raises:
            ValueError: If tenant_id is empty or None
        """
        if not tenant_id:
            raise ValueError("tenant_id is required and cannot be empty")

        self.db_session = db_session
        self.tenant_id = tenant_id
        self._model_class = self._get_model_class()

    @abstractmethod
    def _get_model_class(self) -> type[T]:
        """Return the SQLAlchemy model class for this repository."""
        pass

    def _get_tenant_column_name(self) -> str:
        """Return the name of the tenant_id column in the model."""
        return "tenant_id"

    @property
    def entity_type(self) -> str:
        return self._model_class.__name__

    def _enforce_tenant_scope(self, query):
        """
        Automatically scope query by tenant_id.

        This ensures NO query can access cross-tenant data.
        """
        tenant_column = getattr(self._model_class, self._get_tenant_column_name())
        return query.filter(tenant_column == self.tenant_id)

    def _query(self):
        return self._enforce_tenant_scope(self.db_session.query(self._model_class))

    def get_by_id(self, entity_id: str) -> Optional[T]:
        """Get entity by local id, scoped to tenant."""
        return self._query().filter(self._model_class.id == entity_id).first()

    def get_by_shopify_id(self, shopify_id: str) -> Optional[T]:
        """
        Get entity by natural key (tenant_id, shopify_id).

        Args:
            shopify_id: Canonical upstream id

        Returns:
            Entity if found within tenant scope, None otherwise
        """
        return self._query().filter(self._model_class.shopify_id == shopify_id).first()

    def get_all(self, limit: Optional[int] = None, offset: Optional[int] = None) -> List[T]:
        """Get all entities for tenant."""
        query = self._query()
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    def count(self, **filters: Any) -> int:
        """
        Count entities for tenant, optionally narrowed by equality filters.

        Example:
            repo.count(product_id=None)
        """
        query = self._query()
        for column, value in filters.items():
            query = query.filter(getattr(self._model_class, column) == value)
        return query.count()

    def upsert_by_shopify_id(
        self,
        shopify_id: str,
        fields: Dict[str, Any],
        commit: bool = True,
    ) -> Tuple[T, bool]:
        """
        Insert or overwrite the row for (tenant_id, shopify_id).

        An existing row gets every supplied field overwritten (last write
        wins). A new row is created with the natural key and the tenant id.

        SECURITY: tenant_id in fields is IGNORED; the repository tenant
        is always used.

        Args:
            shopify_id: Canonical upstream id
            fields: Mapped column values
            commit: Commit immediately; otherwise only flush so the caller
                can extend the transaction

        Returns:
            (entity, inserted) tuple

        Raises:
            StoreWriteError: If the write fails (the session is rolled back)
        """
        fields = dict(fields)
        if self._get_tenant_column_name() in fields:
            logger.warning(
                "tenant_id found in upsert fields, removing it",
                extra={"repository_tenant_id": self.tenant_id, "entity_type": self.entity_type},
            )
            fields.pop(self._get_tenant_column_name())
        fields.pop("shopify_id", None)

        try:
            entity = self.get_by_shopify_id(shopify_id)
            inserted = entity is None

            if inserted:
                entity = self._model_class(
                    shopify_id=shopify_id,
                    **{self._get_tenant_column_name(): self.tenant_id},
                    **fields,
                )
                self.db_session.add(entity)
            else:
                for key, value in fields.items():
                    setattr(entity, key, value)

            self.db_session.flush()
        except SQLAlchemyError as e:
            self._rollback("upsert", e)

        if commit:
            self.commit()

        return entity, inserted

    def commit(self) -> None:
        """
        Commit the current unit of work.

        Raises:
            StoreWriteError: If the commit fails (the session is rolled back)
        """
        try:
            self.db_session.commit()
        except SQLAlchemyError as e:
            self._rollback("commit", e)

    def _rollback(self, operation: str, error: SQLAlchemyError) -> None:
        self.db_session.rollback()
        logger.error(
            "Store write failed",
            extra={
                "tenant_id": self.tenant_id,
                "entity_type": self.entity_type,
                "operation": operation,
                "error": str(error),
            },
        )
        raise StoreWriteError(
            f"Failed to {operation} {self.entity_type}: {error}",
            entity_type=self.entity_type,
        ) from error
