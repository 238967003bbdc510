"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from shared.domain.events import DomainEvent


@dataclass(frozen=True, kw_only=True)
class OrderPlaced(DomainEvent):
    """Raised when a per-seller order is persisted at checkout."""

    order_number: str
    checkout_id: UUID
    customer_id: UUID
    seller_id: UUID
    total: Decimal
    payment_method: str


@dataclass(frozen=True, kw_only=True)
class OrderStatusChanged(DomainEvent):
    """Raised on every accepted status transition."""

    order_number: str
    old_status: str
    new_status: str
    actor: str
    note: str = ""


@dataclass(frozen=True, kw_only=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled and its stock released."""

    order_number: str
    reason: str
    actor: str
