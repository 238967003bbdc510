"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations

from marketplace.core.exceptions import (
    InvalidTransition,
    NotFound,
    OrderValidationError,
)


class OrderNotFound(NotFound):
    """The requested order does not exist."""

    code = "order_not_found"


class EmptyCart(OrderValidationError):
    """Checkout was attempted with no cart lines."""

    code = "empty_cart"


class ReturnWindowExpired(OrderValidationError):
    """The return was requested after the return window closed."""

    code = "return_window_expired"


class PaymentPending(InvalidTransition):
    """An online order cannot be confirmed before its payment is verified."""

    code = "payment_pending"


class CartValidationError(OrderValidationError):
    """One or more cart lines reference an unsellable product.

    ``errors`` lists every offending line so the client can fix the whole
    cart in one round trip.
    """

    code = "invalid_cart"

    def __init__(self, errors: list[dict[str, str]]) -> None:
        self.errors = errors
        super().__init__("; ".join(error["detail"] for error in errors))
