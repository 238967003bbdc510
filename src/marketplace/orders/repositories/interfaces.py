"""Order repository interface.

Extends ``IRepository[Order]`` with methods required by the Order
aggregate: creation from a seller draft, status history tracking,
row locking, checkout records and tracking events.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional
from uuid import UUID

from marketplace.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from datetime import datetime

    from django.db.models import QuerySet

    from marketplace.orders.dtos import SellerDraftDTO
    from marketplace.orders.models import (
        Checkout,
        Order,
        OrderStatusHistory,
        OrderTrackingEvent,
    )


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Mutations must be atomic.
    """

    @abstractmethod
    def create_from_draft(
        self,
        draft: SellerDraftDTO,
        *,
        checkout_id: UUID,
        customer_id: UUID,
        payment_method: str,
        shipping_address: Dict[str, Any],
        notes: str = "",
        actor: str = "system",
    ) -> Order:
        """Persist an order, its line snapshots and its first history entry."""

    @abstractmethod
    def save(self, entity: Order, update_fields: Optional[Iterable[str]] = None) -> Order:
        """Persist the order and write its pending domain events to the outbox."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet[Order]:
        """Return a lazily evaluated, eager-loading queryset of orders."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        new_status: str,
        old_status: Optional[str] = None,
        note: str = "",
        actor: str = "system",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def add_tracking_event(
        self,
        order_id: UUID,
        event: str,
        status: str,
        actor: str,
        location: str = "",
        occurred_at: Optional[datetime] = None,
    ) -> OrderTrackingEvent:
        """Append a shipment event to the order's tracking timeline."""

    @abstractmethod
    def list_by_checkout(self, checkout_id: UUID) -> QuerySet[Order]:
        """Orders created by one checkout, oldest first."""

    @abstractmethod
    def get_checkout(self, customer_id: UUID, idempotency_key: str) -> Optional[Checkout]:
        """The customer's checkout submitted with *idempotency_key*, if any."""

    @abstractmethod
    def create_checkout(
        self, customer_id: UUID, idempotency_key: Optional[str] = None
    ) -> Checkout:
        """Record a new checkout; a reused key for the same customer is rejected."""

    @abstractmethod
    def complete_checkout(
        self, checkout: Checkout, failures: List[Dict[str, Any]]
    ) -> None:
        """Mark every seller attempted and store the ones that failed."""
