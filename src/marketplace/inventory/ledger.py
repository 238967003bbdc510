"""Inventory ledger: atomic stock reservation and idempotent release.

Stock lives on ``Product.stock``.  A reservation *is* the decrement: it
is issued as a single conditional ``UPDATE ... SET stock = stock - n
WHERE id = ? AND stock >= n`` so two concurrent checkouts can never both
take the last unit.  There is no read-then-write path anywhere in this
module.

Release is the compensating action.  ``release`` is the raw increment
used to undo reservations inside a failed checkout; ``release_line``
restores an order line exactly once, guarded by
``OrderItem.stock_restored``, so a retried cancellation or return cannot
double-credit stock.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List
from uuid import UUID

import structlog
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from marketplace.core.exceptions import InsufficientStock, OrderValidationError
from marketplace.orders.models import OrderItem
from marketplace.products.models import Product

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Reservation:
    product_id: UUID
    quantity: int
    remaining: int
    low_stock: bool


class InventoryLedger:
    """Stock reservation/release against the ``products`` table."""

    # ------------------------------------------------------------------
    # Reservation
    # ------------------------------------------------------------------

    def reserve(self, product_id: UUID, quantity: int) -> Reservation:
        """Decrement stock by *quantity* only if enough is available.

        Raises:
            OrderValidationError: quantity is not a positive integer.
            InsufficientStock: the conditional update affected zero rows.
        """
        if quantity < 1:
            raise OrderValidationError("Reservation quantity must be at least 1.")

        log = logger.bind(product_id=str(product_id), quantity=quantity)
        updated = (
            Product.objects.alive()
            .filter(pk=product_id, stock__gte=quantity)
            .update(stock=F("stock") - quantity, updated_at=timezone.now())
        )
        if not updated:
            log.info("inventory.reservation_rejected")
            raise InsufficientStock(
                f"Insufficient stock for product {product_id}: requested {quantity}."
            )

        remaining, threshold = Product.objects.filter(pk=product_id).values_list(
            "stock", "low_stock_threshold"
        )[0]
        log.info("inventory.reserved", remaining=remaining)
        return Reservation(
            product_id=product_id,
            quantity=quantity,
            remaining=remaining,
            low_stock=remaining <= threshold,
        )

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    def release(self, product_id: UUID, quantity: int) -> None:
        """Unconditionally return *quantity* units to stock."""
        Product.objects.filter(pk=product_id).update(
            stock=F("stock") + quantity, updated_at=timezone.now()
        )
        logger.info(
            "inventory.released", product_id=str(product_id), quantity=quantity
        )

    @transaction.atomic
    def release_line(self, item: OrderItem) -> bool:
        """Restore an order line's stock once.

        Returns ``True`` if stock was restored by this call, ``False`` if
        the line had already been restored.
        """
        claimed = OrderItem.objects.filter(pk=item.pk, stock_restored=False).update(
            stock_restored=True, updated_at=timezone.now()
        )
        item.stock_restored = True
        if not claimed:
            logger.info(
                "inventory.release_skipped",
                order_item_id=str(item.pk),
                product_id=str(item.product_id),
            )
            return False
        self.release(item.product_id, item.quantity)
        return True

    @contextmanager
    def batch(self) -> Iterator[ReservationBatch]:
        """Group reservations that must succeed or be released together.

        Every reservation made through the yielded batch is released on
        exit unless ``commit()`` was called, including when the block is
        left through ``KeyboardInterrupt`` or a cancelled request.
        """
        reservations = ReservationBatch(self)
        try:
            yield reservations
        finally:
            if not reservations.committed:
                reservations.rollback()


class ReservationBatch:
    """Reservations taken for a single per-seller order draft."""

    def __init__(self, ledger: InventoryLedger) -> None:
        self._ledger = ledger
        self._reservations: List[Reservation] = []
        self.committed = False

    @property
    def reservations(self) -> List[Reservation]:
        return list(self._reservations)

    def reserve(self, product_id: UUID, quantity: int) -> Reservation:
        reservation = self._ledger.reserve(product_id, quantity)
        self._reservations.append(reservation)
        return reservation

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        if not self._reservations:
            return
        if transaction.get_connection().in_atomic_block and transaction.get_rollback():
            # the enclosing transaction is already doomed and will undo the decrements
            logger.info(
                "inventory.batch_rollback_deferred",
                reservations=len(self._reservations),
            )
            self._reservations.clear()
            return
        for reservation in reversed(self._reservations):
            self._ledger.release(reservation.product_id, reservation.quantity)
        logger.info("inventory.batch_released", reservations=len(self._reservations))
        self._reservations.clear()
