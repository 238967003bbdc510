"""Product / catalog exceptions."""

from __future__ import annotations

from marketplace.core.exceptions import NotFound, OrderValidationError


class ProductNotFound(NotFound):
    """The product does not exist or has been soft-deleted."""

    code = "product_not_found"


class InactiveProduct(OrderValidationError):
    """The product exists but is not currently for sale."""

    code = "inactive_product"
