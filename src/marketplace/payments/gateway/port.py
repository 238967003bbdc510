"""Payment gateway port (abstract interface).

Defines the contract every gateway adapter implements: create an order
(intent), verify the checkout callback signature, fetch authoritative
payment details and refund.  Adapters translate provider failures into
``GatewayError``; they never retry internally.

Amounts cross this boundary as ``Decimal`` major units (rupees); each
adapter converts to the provider's own unit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class GatewayIntent:
    """Provider-side order created before the customer pays."""

    intent_id: str
    amount: Decimal
    currency: str
    receipt: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentDetails:
    """Authoritative payment state as reported by the provider."""

    payment_id: str
    intent_id: str | None
    status: str
    amount: Decimal
    method: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_captured(self) -> bool:
        return self.status in {"captured", "authorized"}


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund request."""

    refund_id: str
    status: str
    amount: Decimal
    raw: dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_order(self, amount: Decimal, currency: str, receipt: str) -> GatewayIntent:
        """Create a provider order (payment intent) for *amount*."""
        ...

    @abstractmethod
    def verify_signature(self, intent_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout callback signature in constant time."""
        ...

    @abstractmethod
    def fetch_payment(self, payment_id: str) -> PaymentDetails:
        """Fetch the provider's view of a payment."""
        ...

    @abstractmethod
    def refund(
        self,
        payment_id: str,
        amount: Decimal,
        idempotency_key: str,
        notes: dict[str, str] | None = None,
    ) -> RefundResult:
        """Refund *amount* of a captured payment."""
        ...
