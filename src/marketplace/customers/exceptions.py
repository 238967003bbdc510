"""Customer domain exceptions."""

from __future__ import annotations

from marketplace.core.exceptions import MarketplaceError, NotFound, OrderValidationError


class CustomerNotFound(NotFound):
    """The customer does not exist or has been soft-deleted."""

    code = "customer_not_found"


class InactiveCustomer(OrderValidationError):
    """The customer is inactive and cannot place orders."""

    code = "inactive_customer"


class MissingPhone(OrderValidationError):
    """The customer has no phone number on file to verify."""

    code = "phone_missing"


class VerificationFailed(OrderValidationError):
    """The verification code is wrong, expired or locked after too many attempts."""

    code = "verification_failed"


class VerificationNotSent(MarketplaceError):
    """The verification code could not be delivered; nothing was issued."""

    code = "verification_not_sent"
    status_code = 503
