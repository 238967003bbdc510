"""Django ORM implementation of the catalog lookup."""

from __future__ import annotations

from uuid import UUID

import structlog
from django.core.exceptions import ValidationError

from marketplace.products.exceptions import InactiveProduct, ProductNotFound
from marketplace.products.models import Product, ProductStatus
from marketplace.products.repositories.interfaces import CatalogProduct, ICatalogLookup

logger = structlog.get_logger(__name__)


class DjangoCatalogLookup(ICatalogLookup):
    """Catalog lookup backed by the local ``products`` table."""

    def get_active_product(self, product_id: UUID) -> CatalogProduct:
        try:
            product = (
                Product.objects.alive()
                .select_related("seller")
                .filter(id=product_id)
                .first()
            )
        except (ValueError, ValidationError):
            product = None

        if product is None:
            raise ProductNotFound(f"Product {product_id} not found.")
        if product.status != ProductStatus.ACTIVE or not product.seller.is_active:
            raise InactiveProduct(f"Product {product.sku} is not available.")

        return CatalogProduct(
            id=product.id,
            seller_id=product.seller_id,
            sku=product.sku,
            name=product.name,
            price=product.price,
            stock=product.stock,
            delivery_days=product.delivery_days,
            image_url=product.image_url,
            category=product.category,
        )
