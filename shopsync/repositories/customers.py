"""Repository for tenant-scoped customer mirrors."""

from typing import Dict, Iterable

from shopsync.models.customer import Customer
from shopsync.repositories.base_repo import BaseRepository


class CustomersRepository(BaseRepository[Customer]):
    """Customers of one tenant."""

    def _get_model_class(self) -> type[Customer]:
        return Customer

    def map_ids_by_shopify_id(self, shopify_ids: Iterable[str]) -> Dict[str, str]:
        """Resolve upstream customer ids to local ids; unknown ids are absent."""
        wanted = set(shopify_ids)
        if not wanted:
            return {}
        rows = (
            self.db_session.query(Customer.shopify_id, Customer.id)
            .filter(Customer.tenant_id == self.tenant_id, Customer.shopify_id.in_(wanted))
            .all()
        )
        return {shopify_id: local_id for shopify_id, local_id in rows}
