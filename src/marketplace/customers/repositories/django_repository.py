"""Django ORM implementation of the Customer repository.

Look-ups follow the Null Object convention: ``None`` instead of an
exception, the service layer decides what a missing customer means.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db.models import F
from django.utils import timezone

from marketplace.customers.models import Customer
from marketplace.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)


class CustomerDjangoRepository(ICustomerRepository):
    """Concrete Customer repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Customer]:
        try:
            return Customer.objects.alive().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_user(self, user: Any) -> Optional[Customer]:
        if user is None or not getattr(user, "pk", None):
            return None
        return Customer.objects.alive().filter(user_id=user.pk).first()

    def save(self, entity: Customer) -> Customer:
        entity.save()
        logger.info("customer.saved", customer_id=str(entity.id))
        return entity

    def record_delivered_order(self, customer_id: Any, amount: Decimal) -> None:
        Customer.objects.filter(id=customer_id).update(
            total_orders=F("total_orders") + 1,
            total_spent=F("total_spent") + amount,
        )
        logger.info(
            "customer.stats_updated",
            customer_id=str(customer_id),
            amount=str(amount),
        )

    def mark_phone_verified(self, customer_id: Any) -> None:
        Customer.objects.filter(id=customer_id).update(phone_verified_at=timezone.now())
        logger.info("customer.phone_verified", customer_id=str(customer_id))
