"""Seller (store) model.

Every product belongs to exactly one seller and every order is placed
with exactly one seller.  ``total_orders`` / ``total_revenue`` count
delivered orders only.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from marketplace.core.models import SoftDeleteModel


class Seller(SoftDeleteModel):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="seller_profile",
    )
    store_name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254, unique=True)
    contact_number = models.CharField(max_length=20, blank=True, default="")
    is_active = models.BooleanField(default=True)
    total_orders = models.PositiveIntegerField(default=0)
    total_revenue = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0.00")
    )

    class Meta:
        db_table = "sellers"
        ordering = ["store_name"]

    def __str__(self) -> str:
        return self.store_name
