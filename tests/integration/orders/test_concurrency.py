"""Stock concurrency integration test.

Proves that the conditional stock decrement in ``InventoryLedger.reserve``
serializes concurrent checkouts of the same product.

Scenario:
- Product "Gamer PC" with **stock = 5**.
- 10 threads check out 1 unit each simultaneously.
- Exactly 5 succeed; the rest are turned away for insufficient stock,
  either at cart validation or at reservation time.
- Final stock is 0 (never negative).

Uses ``TransactionTestCase`` so each thread can see committed data.
SQLite's shared-cache test database reports lock contention as
``OperationalError``; a thread then retries with the same
``Idempotency-Key`` so a checkout that did commit is never repeated.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from decimal import Decimal

import django
import structlog
from django.db import OperationalError
from django.test import TransactionTestCase

from marketplace.customers.models import Customer
from marketplace.orders.dtos import CartLineDTO, PlaceOrderDTO, ShippingAddressDTO
from marketplace.orders.exceptions import CartValidationError
from marketplace.orders.models import Order
from marketplace.orders.services import build_fulfillment_coordinator
from marketplace.products.models import Product, ProductStatus
from marketplace.sellers.models import Seller

logger = structlog.get_logger(__name__)

INITIAL_STOCK = 5
NUM_WORKERS = 10
MAX_ATTEMPTS = 50

ADDRESS = ShippingAddressDTO(
    first_name="Concurrency",
    address="1 Residency Road",
    city="Bengaluru",
    state="Karnataka",
    pincode="560025",
    phone="9876543210",
)


class TestStockConcurrency(TransactionTestCase):
    """Prove atomic stock reservation under concurrent load."""

    def setUp(self):
        self.customer = Customer.objects.create(
            name="Concurrency Customer",
            email="concurrency@example.com",
            phone="9876543210",
            is_active=True,
        )
        seller = Seller.objects.create(
            store_name="Rig Builders",
            email="rigs@example.com",
        )
        self.product = Product.objects.create(
            seller=seller,
            sku="GAMER-PC",
            name="Gamer PC",
            price=Decimal("89999.00"),
            stock=INITIAL_STOCK,
            delivery_days=4,
            low_stock_threshold=0,
            status=ProductStatus.ACTIVE,
        )

    def _checkout_in_thread(self, thread_id: int) -> str:
        """Attempt a checkout. Returns 'success' or 'insufficient'.

        Each thread gets its own DB connection via Django's connection
        handling, ensuring realistic concurrent transactions.
        """
        django.db.connections.close_all()
        coordinator = build_fulfillment_coordinator()
        dto = PlaceOrderDTO(
            customer_id=self.customer.id,
            lines=[CartLineDTO(product_id=self.product.id, quantity=1)],
            shipping_address=ADDRESS,
            payment_method="cod",
            idempotency_key=f"concurrency-{thread_id}",
        )

        for _ in range(MAX_ATTEMPTS):
            try:
                result = coordinator.place_order(dto)
            except CartValidationError:
                logger.info("concurrency.rejected_at_validation", thread_id=thread_id)
                return "insufficient"
            except OperationalError:
                time.sleep(0.01)
                continue
            if result.created:
                logger.info("concurrency.order_created", thread_id=thread_id)
                return "success"
            assert result.failed[0].code == "insufficient_stock"
            logger.info("concurrency.rejected_at_reservation", thread_id=thread_id)
            return "insufficient"
        return "gave_up"

    def _run_workers(self) -> list[str]:
        results = []
        with ThreadPoolExecutor(max_workers=NUM_WORKERS) as pool:
            futures = {
                pool.submit(self._checkout_in_thread, i): i for i in range(NUM_WORKERS)
            }
            for future in as_completed(futures):
                results.append(future.result())
        return results

    def test_concurrent_checkouts_exhaust_stock(self):
        """10 threads buy 1 unit from stock=5: exactly 5 succeed."""
        results = self._run_workers()

        self.assertNotIn("gave_up", results)
        successes = results.count("success")
        failures = results.count("insufficient")

        self.assertEqual(
            successes,
            INITIAL_STOCK,
            f"Expected {INITIAL_STOCK} successes, got {successes}",
        )
        self.assertEqual(
            failures,
            NUM_WORKERS - INITIAL_STOCK,
            f"Expected {NUM_WORKERS - INITIAL_STOCK} failures, got {failures}",
        )
        self.assertEqual(Order.objects.count(), INITIAL_STOCK)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0, f"Stock should be 0, got {self.product.stock}")

    def test_stock_is_conserved(self):
        """initial = sold + remaining, and stock never goes negative."""
        results = self._run_workers()

        self.product.refresh_from_db()
        self.assertGreaterEqual(self.product.stock, 0)
        sold = results.count("success")
        self.assertEqual(
            INITIAL_STOCK,
            sold + self.product.stock,
            f"Conservation violated: {INITIAL_STOCK} != {sold} + {self.product.stock}",
        )
