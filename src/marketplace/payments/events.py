"""Domain events for the Payments bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class PaymentCompleted(DomainEvent):
    """Raised when a callback signature is verified and the gateway confirms capture."""

    order_id: UUID
    amount: Decimal
    gateway_payment_id: str


@dataclass(frozen=True, kw_only=True)
class PaymentRefunded(DomainEvent):
    """Raised for every successful refund, partial or full."""

    order_id: UUID
    amount: Decimal
    refund_amount: Decimal
    fully_refunded: bool
    refund_id: str
