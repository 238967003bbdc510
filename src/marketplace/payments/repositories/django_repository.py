"""Django ORM implementation of the Payment repository."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet

from marketplace.core.outbox import flush_domain_events
from marketplace.payments.gateway.port import GatewayIntent
from marketplace.payments.models import Payment
from marketplace.payments.repositories.interfaces import IPaymentRepository

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "payments"


class PaymentDjangoRepository(IPaymentRepository):
    """Concrete Payment repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[Payment]:
        try:
            return Payment.objects.select_related("order").filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Payment]:
        try:
            return Payment.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_by_gateway_order(
        self, gateway_order_id: str, for_update: bool = False
    ) -> Optional[Payment]:
        queryset = Payment.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        return queryset.filter(gateway_order_id=gateway_order_id).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet[Payment]:
        queryset = Payment.objects.select_related("order")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset.order_by("-created_at", "-id")

    def get_by_order(self, order_id: Any, for_update: bool = False) -> Optional[Payment]:
        queryset = Payment.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        try:
            return queryset.filter(order_id=order_id).first()
        except (ValueError, ValidationError):
            return None

    def create(self, order_id: Any, intent: GatewayIntent) -> Payment:
        payment = Payment.objects.create(
            order_id=order_id,
            amount=intent.amount,
            currency=intent.currency,
            gateway_order_id=intent.intent_id,
            gateway_response=intent.raw,
        )
        logger.info(
            "payment.created",
            payment_id=str(payment.id),
            order_id=str(order_id),
            gateway_order_id=intent.intent_id,
        )
        return payment

    @transaction.atomic
    def save(self, entity: Payment, update_fields: Optional[Iterable[str]] = None) -> Payment:
        if update_fields is None:
            entity.save()
        else:
            entity.save(update_fields=list(update_fields))
        flush_domain_events(entity, OUTBOX_TOPIC)
        return entity
