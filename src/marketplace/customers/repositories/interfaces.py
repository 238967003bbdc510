"""Customer repository interface."""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from marketplace.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from marketplace.customers.models import Customer


class ICustomerRepository(IRepository["Customer"]):
    """Repository contract for the Customer aggregate."""

    @abstractmethod
    def get_by_user(self, user: Any) -> Optional[Customer]:
        """Retrieve the customer profile linked to an auth user."""

    @abstractmethod
    def record_delivered_order(self, customer_id: Any, amount: Decimal) -> None:
        """Atomically add one order and ``amount`` to the lifetime totals."""

    @abstractmethod
    def mark_phone_verified(self, customer_id: Any) -> None:
        """Stamp ``phone_verified_at`` with the current time."""
