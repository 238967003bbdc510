"""Order, OrderItem, OrderStatusHistory, OrderTrackingEvent and Checkout models.

Business rules implemented:
- One seller per order: a multi-seller cart produces several orders that
  share a ``checkout_id``, at most one per seller.
- Money fields (``subtotal``, ``shipping``, ``tax``, ``total``) are
  computed once by the order splitter and never recomputed.
- ``status`` / ``payment_status`` are changed only by
  ``OrderStateMachine``; each status change appends a history record.
- History records are append-only.
- A retried checkout is recognised by its ``Checkout`` record, whose
  idempotency key is unique per customer.
- Order number auto-generated as human-readable identifier.
- OrderItem snapshots name/sku/image/price at purchase time.
- Orders are never deleted: cancellation and refund are terminal states.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from marketplace.core.models import BaseModel
from marketplace.orders.constants import (
    ORDER_NUMBER_MAX_RETRIES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    OrderPaymentStatus,
    OrderStatus,
    PaymentMethod,
    ReturnStatus,
)
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)


class Checkout(BaseModel):
    """One cart submission.  Its ``id`` is the ``checkout_id`` of every
    order it produced.

    ``idempotency_key`` is the client's ``Idempotency-Key`` header and is
    unique per customer, so two customers sending the same key never see
    each other's checkout.  ``failed_sellers`` keeps the per-seller
    failures so a replayed checkout reports them again.  ``completed_at``
    is set once every seller has been attempted; a retry of an incomplete
    checkout resumes it instead of replaying it.
    """

    customer: models.ForeignKey = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="checkouts",
    )
    idempotency_key: models.CharField = models.CharField(  # noqa: DJ01
        max_length=255,
        null=True,
        blank=True,
    )
    failed_sellers: models.JSONField = models.JSONField(default=list, blank=True)
    completed_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "checkouts"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["customer", "idempotency_key"],
                name="checkouts_customer_key_unique",
            ),
        ]

    @property
    def is_complete(self) -> bool:
        return self.completed_at is not None

    def __str__(self) -> str:
        return f"checkout {self.id} ({self.customer_id})"


class Order(DomainEventMixin, BaseModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``ORD-YYYYMMDD-XXXXXX``).  The UUIDv7 ``id`` is used for
    all internal references and API lookups.

    ``checkout_id`` is the id of the ``Checkout`` that produced the order.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    checkout_id: models.UUIDField = models.UUIDField(db_index=True)
    customer: models.ForeignKey = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    seller: models.ForeignKey = models.ForeignKey(
        "sellers.Seller",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_method: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
    )
    payment_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderPaymentStatus.choices,
        default=OrderPaymentStatus.PENDING,
    )
    paid_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    subtotal: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    shipping: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    tax: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    shipping_address: models.JSONField = models.JSONField(default=dict)
    tracking_number: models.CharField = models.CharField(
        max_length=100, blank=True, default=""
    )
    estimated_delivery: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )
    actual_delivery: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )

    notes: models.TextField = models.TextField(blank=True, default="")
    cancellation_reason: models.TextField = models.TextField(blank=True, default="")

    return_reason: models.TextField = models.TextField(blank=True, default="")
    return_requested_at: models.DateTimeField = models.DateTimeField(
        null=True, blank=True
    )
    return_item_ids: models.JSONField = models.JSONField(default=list, blank=True)
    return_status: models.CharField = models.CharField(
        max_length=20,
        choices=ReturnStatus.choices,
        blank=True,
        default="",
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["seller", "status"], name="orders_seller_status_idx"),
            models.Index(fields=["customer", "-created_at"], name="orders_customer_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["checkout_id", "seller"],
                name="orders_checkout_seller_unique",
            ),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def is_cod(self) -> bool:
        return self.payment_method == PaymentMethod.COD

    @property
    def is_paid(self) -> bool:
        return self.payment_status == OrderPaymentStatus.PAID

    @property
    def next_statuses(self) -> frozenset[str]:
        """Statuses reachable from the current one in a single transition."""
        return frozenset(VALID_TRANSITIONS.get(self.status, ()))

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in self.next_statuses

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            self.order_number = _unused_order_number()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


def _unused_order_number() -> str:
    """``ORD-<local date>-<6 hex digits>``, retried on the rare collision."""
    day = timezone.localdate().strftime("%Y%m%d")
    for _ in range(ORDER_NUMBER_MAX_RETRIES):
        candidate = f"ORD-{day}-{secrets.token_hex(3).upper()}"
        if not Order.objects.filter(order_number=candidate).exists():
            return candidate
    logger.error("order.number_exhausted", day=day, attempts=ORDER_NUMBER_MAX_RETRIES)
    raise RuntimeError(
        f"No free order number after {ORDER_NUMBER_MAX_RETRIES} attempts."
    )


class OrderItem(BaseModel):
    """Immutable line snapshot of a product at purchase time.

    ``unit_price``, ``name``, ``sku`` and ``image_url`` are copied from the
    catalog when the order is placed and never follow later catalog edits.
    ``subtotal`` is always ``quantity * unit_price``.

    ``stock_restored`` flips to ``True`` the first time the line's stock is
    released (cancellation or return) and guards against double credit.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product: models.ForeignKey = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    name: models.CharField = models.CharField(max_length=255)
    sku: models.CharField = models.CharField(max_length=64)
    image_url: models.URLField = models.URLField(max_length=500, blank=True, default="")
    variant: models.CharField = models.CharField(max_length=100, blank=True, default="")
    delivery_days: models.PositiveSmallIntegerField = models.PositiveSmallIntegerField(
        default=0
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        editable=False,
    )
    stock_restored: models.BooleanField = models.BooleanField(default=False)

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.sku} x{self.quantity} ({self.subtotal})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    Each record captures a single status change with the responsible actor
    and an optional note (e.g. cancellation reason).  ``actor`` is the
    acting customer/seller id, or ``"system"`` for automatic transitions
    such as payment confirmation.

    Audit records are immutable: ``save`` refuses to update an existing
    row and ``delete`` is refused outright.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
    )
    note: models.TextField = models.TextField(blank=True, default="")
    actor: models.CharField = models.CharField(max_length=64)

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ValidationError("Status history entries are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any):
        raise ValidationError("Status history entries cannot be deleted.")

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"


class OrderTrackingEvent(BaseModel):
    """A shipment scan or courier update recorded by the seller.

    Unlike ``OrderStatusHistory`` these do not change the order status;
    ``status`` is the order status when the event was recorded.  Events
    are append-only.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="tracking_events",
    )
    event: models.CharField = models.CharField(max_length=255)
    location: models.CharField = models.CharField(max_length=255, blank=True, default="")
    status: models.CharField = models.CharField(max_length=20, choices=OrderStatus.choices)
    occurred_at: models.DateTimeField = models.DateTimeField(default=timezone.now)
    actor: models.CharField = models.CharField(max_length=64)

    class Meta:
        db_table = "order_tracking_events"
        ordering = ["occurred_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "occurred_at"],
                name="ote_order_occurred_idx",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ValidationError("Tracking events are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any):
        raise ValidationError("Tracking events cannot be deleted.")

    def __str__(self) -> str:
        return f"{self.order_id} @ {self.occurred_at:%Y-%m-%d %H:%M}: {self.event}"
