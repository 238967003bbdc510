"""Seller repository interface."""

from __future__ import annotations

from abc import abstractmethod
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from marketplace.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from marketplace.sellers.models import Seller


class ISellerRepository(IRepository["Seller"]):
    """Repository contract for the Seller aggregate."""

    @abstractmethod
    def get_by_user(self, user: Any) -> Optional[Seller]:
        """Retrieve the seller profile linked to an auth user."""

    @abstractmethod
    def record_delivered_order(self, seller_id: Any, amount: Decimal) -> None:
        """Atomically add one order and ``amount`` to the seller's totals."""
