"""Django ORM implementation of the Seller repository."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db.models import F

from marketplace.sellers.models import Seller
from marketplace.sellers.repositories.interfaces import ISellerRepository

logger = structlog.get_logger(__name__)


class SellerDjangoRepository(ISellerRepository):
    """Concrete Seller repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Seller]:
        try:
            return Seller.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_user(self, user: Any) -> Optional[Seller]:
        if user is None or not getattr(user, "pk", None):
            return None
        return Seller.objects.alive().filter(user_id=user.pk).first()

    def save(self, entity: Seller) -> Seller:
        entity.save()
        logger.info("seller.saved", seller_id=str(entity.id))
        return entity

    def record_delivered_order(self, seller_id: Any, amount: Decimal) -> None:
        Seller.objects.filter(id=seller_id).update(
            total_orders=F("total_orders") + 1,
            total_revenue=F("total_revenue") + amount,
        )
        logger.info(
            "seller.stats_updated", seller_id=str(seller_id), amount=str(amount)
        )
