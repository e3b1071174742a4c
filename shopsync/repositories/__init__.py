"""Repository layer with tenant isolation enforcement."""

from shopsync.repositories.base_repo import BaseRepository
from shopsync.repositories.customers import CustomersRepository
from shopsync.repositories.orders import OrdersRepository
from shopsync.repositories.products import ProductsRepository
from shopsync.repositories.tenants import TenantsRepository, DuplicateShopDomainError

__all__ = [
    "BaseRepository",
    "CustomersRepository",
    "OrdersRepository",
    "ProductsRepository",
    "TenantsRepository",
    "DuplicateShopDomainError",
]
