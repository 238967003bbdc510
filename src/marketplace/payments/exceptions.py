"""Payment domain exceptions.

Raised by ``PaymentReconciler``.  Categories come from
``marketplace.core.exceptions``; ``status_code`` refines the HTTP status
where the category default does not fit.
"""

from __future__ import annotations

from marketplace.core.exceptions import (
    InvalidTransition,
    MarketplaceError,
    NotFound,
    OrderValidationError,
)


class PaymentNotFound(NotFound):
    """No payment matches the given id or gateway order id."""

    code = "payment_not_found"


class AmountMismatch(OrderValidationError):
    """The client-declared amount disagrees with the server-computed total."""

    code = "amount_mismatch"


class SignatureInvalid(MarketplaceError):
    """The checkout callback signature does not match."""

    code = "signature_invalid"
    status_code = 400


class PaymentDeclined(MarketplaceError):
    """The gateway reports the payment as not captured."""

    code = "payment_declined"
    status_code = 402


class PaymentNotEligible(InvalidTransition):
    """The order or payment is not in a state that allows this operation."""

    code = "payment_not_eligible"


class RefundError(OrderValidationError):
    """The refund amount is not positive or exceeds what remains refundable."""

    code = "refund_error"


class LateCaptureRefunded(PaymentNotEligible):
    """The customer paid after the order was cancelled; the capture was refunded.

    ``payment`` is the refunded payment and ``refund_id`` the gateway refund.
    """

    code = "late_capture_refunded"

    def __init__(self, message: str, payment, refund_id: str) -> None:
        self.payment = payment
        self.refund_id = refund_id
        super().__init__(message)
