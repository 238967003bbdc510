"""Product model: the catalog record that carries the stock line.

Business rules implemented:
- SKU is unique (normalised to uppercase).
- Price must be greater than zero.
- ``stock`` can never go negative: the column is unsigned, a CHECK
  constraint backs it up, and the inventory ledger only decrements with
  a conditional ``UPDATE ... WHERE stock >= n``.
- Inactive or soft-deleted products cannot be sold.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from marketplace.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)

DEFAULT_DELIVERY_DAYS = 7
DEFAULT_LOW_STOCK_THRESHOLD = 5


class ProductStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class Product(SoftDeleteModel):
    seller = models.ForeignKey(
        "sellers.Seller",
        on_delete=models.PROTECT,
        related_name="products",
    )
    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    image_url = models.URLField(max_length=500, blank=True, default="")
    category = models.CharField(max_length=100, blank=True, default="")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    stock = models.PositiveIntegerField(default=0)
    low_stock_threshold = models.PositiveIntegerField(
        default=DEFAULT_LOW_STOCK_THRESHOLD
    )
    delivery_days = models.PositiveSmallIntegerField(default=DEFAULT_DELIVERY_DAYS)
    status = models.CharField(
        max_length=20,
        choices=ProductStatus.choices,
        default=ProductStatus.ACTIVE,
    )

    class Meta:
        db_table = "products"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["seller", "status"], name="products_seller_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(price__gt=0),
                name="products_price_positive",
            ),
            models.CheckConstraint(
                check=models.Q(stock__gte=0),
                name="products_stock_non_negative",
            ),
        ]

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.low_stock_threshold

    def clean(self) -> None:
        super().clean()
        if self.sku:
            self.sku = self.sku.strip().upper()
        if self.price is not None and self.price <= 0:
            raise ValidationError({"price": "Price must be greater than zero."})

    def save(self, *args, **kwargs) -> None:
        is_new = self._state.adding
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)
        if is_new:
            logger.info(
                "product_created",
                product_id=str(self.id),
                seller_id=str(self.seller_id),
                sku=self.sku,
            )

    def __str__(self) -> str:
        return f"{self.sku} - {self.name}"
