"""Customer model.

The customer record is owned by the identity service; this service
keeps the columns checkout needs (contact details for notifications,
``is_active``) plus the lifetime statistics updated when an order is
delivered, and when the phone number was last verified.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from marketplace.core.models import SoftDeleteModel


class Customer(SoftDeleteModel):
    """Customer aggregate root.

    ``total_orders`` / ``total_spent`` are only ever changed with
    ``F()`` expressions so concurrent deliveries cannot lose updates.
    ``phone_verified_at`` is set when the customer confirms a code sent
    to ``phone``.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="customer_profile",
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254, unique=True)
    phone = models.CharField(max_length=20, blank=True, default="")
    phone_verified_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    total_orders = models.PositiveIntegerField(default=0)
    total_spent = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        db_table = "customers"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_active"], name="customers_active_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"
