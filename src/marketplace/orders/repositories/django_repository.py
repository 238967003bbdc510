"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
Order creation writes the order, its line snapshots and its first
history record atomically.  Concurrency control on status updates uses
``select_for_update()`` on the order row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from marketplace.core.outbox import flush_domain_events
from marketplace.orders.dtos import SellerDraftDTO
from marketplace.orders.events import OrderPlaced
from marketplace.orders.models import (
    Checkout,
    Order,
    OrderItem,
    OrderStatusHistory,
    OrderTrackingEvent,
)
from marketplace.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

OUTBOX_TOPIC = "orders"


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
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
        order = Order(
            checkout_id=checkout_id,
            customer_id=customer_id,
            seller_id=draft.seller_id,
            payment_method=payment_method,
            subtotal=draft.subtotal,
            shipping=draft.shipping,
            tax=draft.tax,
            total=draft.total,
            estimated_delivery=draft.estimated_delivery,
            shipping_address=shipping_address,
            notes=notes or "",
        )
        order.save()

        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    product_id=line.product_id,
                    name=line.name,
                    sku=line.sku,
                    image_url=line.image_url,
                    variant=line.variant,
                    delivery_days=line.delivery_days,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal,
                )
                for line in draft.lines
            ]
        )

        order.add_domain_event(
            OrderPlaced(
                aggregate_id=order.id,
                order_number=order.order_number,
                checkout_id=checkout_id,
                customer_id=customer_id,
                seller_id=draft.seller_id,
                total=draft.total,
                payment_method=payment_method,
            )
        )
        flush_domain_events(order, OUTBOX_TOPIC)

        self.add_history(
            order_id=order.id,
            new_status=order.status,
            old_status=None,
            note="Order placed",
            actor=actor,
        )

        logger.info(
            "order.created",
            order_id=str(order.id),
            seller_id=str(draft.seller_id),
            item_count=len(draft.lines),
        )
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _base_queryset(self) -> QuerySet[Order]:
        return Order.objects.select_related("customer", "seller").prefetch_related(
            "items", "status_history", "tracking_events"
        )

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with eager-loaded relations.

        Uses ``select_related`` for the customer/seller FKs and
        ``prefetch_related`` for items and status history.  Prevents N+1.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return self._base_queryset().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> QuerySet[Order]:
        """List orders with optional filters and eager-loaded relations.

        Supported filter keys are any ``Order`` lookups, e.g.
        ``status``, ``customer_id``, ``seller_id``, ``created_at__range``.
        """
        queryset = self._base_queryset()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``transaction.atomic``.  Returns ``None``
        for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.select_for_update()
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def list_by_checkout(self, checkout_id: UUID) -> QuerySet[Order]:
        return self._base_queryset().filter(checkout_id=checkout_id).order_by("created_at", "id")

    # ------------------------------------------------------------------
    # Checkout records
    # ------------------------------------------------------------------

    def get_checkout(self, customer_id: UUID, idempotency_key: str) -> Optional[Checkout]:
        return Checkout.objects.filter(
            customer_id=customer_id, idempotency_key=idempotency_key
        ).first()

    def create_checkout(
        self, customer_id: UUID, idempotency_key: Optional[str] = None
    ) -> Checkout:
        """Raises ``IntegrityError`` when the customer already used *idempotency_key*."""
        # savepoint keeps a duplicate-key failure from poisoning an outer transaction
        with transaction.atomic():
            return Checkout.objects.create(
                customer_id=customer_id, idempotency_key=idempotency_key
            )

    def complete_checkout(
        self, checkout: Checkout, failures: List[Dict[str, Any]]
    ) -> None:
        checkout.failed_sellers = failures
        checkout.completed_at = timezone.now()
        checkout.save(update_fields=["failed_sellers", "completed_at"])
        logger.info(
            "order.checkout_closed",
            checkout_id=str(checkout.id),
            failed=len(failures),
        )

    # ------------------------------------------------------------------
    # Save (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order, update_fields: Optional[Iterable[str]] = None) -> Order:
        """Persist (create or update) an order and flush its events to the outbox."""
        if update_fields is None:
            entity.save()
        else:
            entity.save(update_fields=list(update_fields))
        event_count = flush_domain_events(entity, OUTBOX_TOPIC)
        logger.debug("order.saved", order_id=str(entity.id), event_count=event_count)
        return entity

    # ------------------------------------------------------------------
    # Status history
    # ------------------------------------------------------------------

    def add_history(
        self,
        order_id: UUID,
        new_status: str,
        old_status: Optional[str] = None,
        note: str = "",
        actor: str = "system",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            note=note,
            actor=actor,
        )
        logger.info(
            "order.history_added",
            order_id=str(order_id),
            old_status=old_status,
            new_status=new_status,
        )
        return history

    def add_tracking_event(
        self,
        order_id: UUID,
        event: str,
        status: str,
        actor: str,
        location: str = "",
        occurred_at: Optional[datetime] = None,
    ) -> OrderTrackingEvent:
        tracking_event = OrderTrackingEvent.objects.create(
            order_id=order_id,
            event=event,
            location=location,
            status=status,
            occurred_at=occurred_at or timezone.now(),
            actor=actor,
        )
        logger.info(
            "order.tracking_event_added",
            order_id=str(order_id),
            tracking_event_id=str(tracking_event.id),
        )
        return tracking_event
