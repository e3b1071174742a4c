"""Repository for tenant-scoped product mirrors."""

from typing import Dict, Iterable

from shopsync.models.product import Product
from shopsync.repositories.base_repo import BaseRepository


class ProductsRepository(BaseRepository[Product]):
    """Products of one tenant."""

    def _get_model_class(self) -> type[Product]:
        return Product

    def map_ids_by_shopify_id(self, shopify_ids: Iterable[str]) -> Dict[str, str]:
        """Resolve upstream product ids to local ids; unknown ids are absent."""
        wanted = set(shopify_ids)
        if not wanted:
            return {}
        rows = (
            self.db_session.query(Product.shopify_id, Product.id)
            .filter(Product.tenant_id == self.tenant_id, Product.shopify_id.in_(wanted))
            .all()
        )
        return {shopify_id: local_id for shopify_id, local_id in rows}
