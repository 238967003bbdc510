"""Payment model.

Business rules implemented:
- One payment per order (``OneToOneField``).
- ``refund_amount`` is a running total and never exceeds ``amount``
  (CHECK constraint + reconciler validation).
- ``status`` becomes ``refunded`` only once ``refund_amount == amount``.
- Payments are never deleted.
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models

from marketplace.core.models import BaseModel
from marketplace.payments.constants import PaymentStatus
from shared.domain.events import DomainEventMixin


class Payment(DomainEventMixin, BaseModel):
    order = models.OneToOneField(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payment",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="INR")
    gateway_order_id = models.CharField(max_length=100, unique=True)
    gateway_payment_id = models.CharField(max_length=100, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.CREATED,
    )
    refund_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    failure_reason = models.TextField(blank=True, default="")
    refund_reason = models.TextField(blank=True, default="")
    gateway_response = models.JSONField(default=dict, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "payments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="payments_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(refund_amount__lte=models.F("amount")),
                name="payments_refund_not_above_amount",
            ),
            models.CheckConstraint(
                check=models.Q(refund_amount__gte=0),
                name="payments_refund_non_negative",
            ),
        ]

    @property
    def refundable_amount(self) -> Decimal:
        return self.amount - self.refund_amount

    @property
    def is_fully_refunded(self) -> bool:
        return self.refund_amount >= self.amount

    def __str__(self) -> str:
        return f"{self.gateway_order_id} [{self.status}] {self.amount} {self.currency}"
