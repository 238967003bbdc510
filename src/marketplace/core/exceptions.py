"""Marketplace error taxonomy.

Every domain exception derives from ``MarketplaceError`` and carries a
stable machine-readable ``code``.  Module-specific exceptions
(``orders.exceptions``, ``payments.exceptions``...) subclass the
categories below so the API layer can translate a whole category into
one HTTP status.
"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base class for all domain errors."""

    code = "marketplace_error"


class OrderValidationError(MarketplaceError):
    """Malformed or unacceptable input, rejected before touching storage."""

    code = "validation_error"


class NotFound(MarketplaceError):
    """An order, product, payment, customer or seller does not exist."""

    code = "not_found"


class NotAuthorized(MarketplaceError):
    """The acting customer/seller does not own the order."""

    code = "not_authorized"


class InsufficientStock(MarketplaceError):
    """An atomic stock reservation affected zero rows."""

    code = "insufficient_stock"


class InvalidTransition(MarketplaceError):
    """The order state machine rejected a status change."""

    code = "invalid_transition"


class GatewayError(MarketplaceError):
    """The payment provider failed; retry with the same idempotency key."""

    code = "gateway_error"
