"""Payment repository interface."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

from marketplace.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from marketplace.payments.gateway.port import GatewayIntent
    from marketplace.payments.models import Payment


class IPaymentRepository(IRepository["Payment"]):
    """Repository contract for the Payment aggregate."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Payment]:
        """Retrieve a payment holding a row-level lock."""

    @abstractmethod
    def get_by_gateway_order(
        self, gateway_order_id: str, for_update: bool = False
    ) -> Optional[Payment]:
        """Retrieve a payment by its gateway intent id."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet[Payment]:
        """Payments matching ORM *filters*, newest first."""

    @abstractmethod
    def get_by_order(self, order_id: Any, for_update: bool = False) -> Optional[Payment]:
        """Retrieve the payment attached to an order, if any."""

    @abstractmethod
    def create(self, order_id: Any, intent: GatewayIntent) -> Payment:
        """Persist a new payment in ``created`` state for a gateway intent."""

    @abstractmethod
    def save(self, entity: Payment, update_fields: Optional[Iterable[str]] = None) -> Payment:
        """Persist the payment and write its pending domain events to the outbox."""
