"""Catalog lookup interface.

The catalog is owned by another service; checkout only needs a
read-only view of a sellable product.  ``CatalogProduct`` is that view,
detached from the ORM so the order splitter can be exercised with plain
in-memory catalogs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class CatalogProduct:
    id: UUID
    seller_id: UUID
    sku: str
    name: str
    price: Decimal
    stock: int
    delivery_days: int
    image_url: str = ""
    category: str = ""


class ICatalogLookup(ABC):
    """Read-only catalog contract consumed by checkout."""

    @abstractmethod
    def get_active_product(self, product_id: UUID) -> CatalogProduct:
        """Return the sellable product.

        Raises:
            ProductNotFound: unknown or soft-deleted product.
            InactiveProduct: product exists but is not for sale.
        """
