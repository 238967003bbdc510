"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations.  The
default class comes from the ``MARKETPLACE_PAYMENT_GATEWAY`` setting:
- RazorpayGateway in production
- FakeGateway for development and testing
"""

from __future__ import annotations

from django.conf import settings
from django.utils.module_loading import import_string

from marketplace.payments.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building the configured one on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = import_string(settings.MARKETPLACE_PAYMENT_GATEWAY)()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to the configured gateway."""
    global _current_gateway
    _current_gateway = None
