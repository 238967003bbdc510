"""Unit tests for the inventory ledger.

Covers:
- Conditional reservation (never below zero).
- Low-stock flag on reservations.
- Idempotent line release.
- Reservation batches released unless committed.
"""

from __future__ import annotations

import pytest

from marketplace.core.exceptions import InsufficientStock, OrderValidationError
from marketplace.inventory.ledger import InventoryLedger

pytestmark = pytest.mark.unit


@pytest.fixture()
def ledger():
    return InventoryLedger()


@pytest.fixture()
def product(make_product, seller_x):
    return make_product(seller_x, stock=5)


class TestReserve:
    def test_reserve_decrements_stock(self, ledger, product):
        reservation = ledger.reserve(product.id, 3)
        product.refresh_from_db()
        assert product.stock == 2
        assert reservation.remaining == 2

    def test_reserve_exact_stock_leaves_zero(self, ledger, product):
        ledger.reserve(product.id, 5)
        product.refresh_from_db()
        assert product.stock == 0

    def test_reserve_more_than_available_changes_nothing(self, ledger, product):
        with pytest.raises(InsufficientStock):
            ledger.reserve(product.id, 6)
        product.refresh_from_db()
        assert product.stock == 5

    def test_reserve_rejects_non_positive_quantity(self, ledger, product):
        with pytest.raises(OrderValidationError):
            ledger.reserve(product.id, 0)

    def test_soft_deleted_product_cannot_be_reserved(self, ledger, product):
        product.delete()
        with pytest.raises(InsufficientStock):
            ledger.reserve(product.id, 1)

    def test_low_stock_flag(self, ledger, product):
        # threshold is 2
        assert ledger.reserve(product.id, 2).low_stock is False
        assert ledger.reserve(product.id, 1).low_stock is True


class TestReleaseLine:
    def test_release_line_restores_once(self, ledger, place_order, customer, product):
        order = place_order(customer, [(product, 2)])
        product.refresh_from_db()
        assert product.stock == 3

        item = order.items.get()
        assert ledger.release_line(item) is True
        assert ledger.release_line(item) is False

        product.refresh_from_db()
        item.refresh_from_db()
        assert product.stock == 5
        assert item.stock_restored is True

    def test_stale_copy_cannot_release_twice(self, ledger, place_order, customer, product):
        order = place_order(customer, [(product, 2)])
        first = order.items.get()
        stale = order.items.get()

        ledger.release_line(first)
        assert ledger.release_line(stale) is False

        product.refresh_from_db()
        assert product.stock == 5


class TestBatch:
    def test_uncommitted_batch_is_released(self, ledger, product):
        with ledger.batch() as batch:
            batch.reserve(product.id, 4)
        product.refresh_from_db()
        assert product.stock == 5

    def test_committed_batch_keeps_reservations(self, ledger, product):
        with ledger.batch() as batch:
            batch.reserve(product.id, 4)
            batch.commit()
        product.refresh_from_db()
        assert product.stock == 1

    def test_failure_releases_earlier_reservations(self, ledger, make_product, seller_x):
        first = make_product(seller_x, stock=5)
        second = make_product(seller_x, stock=1)

        with pytest.raises(InsufficientStock):
            with ledger.batch() as batch:
                batch.reserve(first.id, 2)
                batch.reserve(second.id, 2)

        first.refresh_from_db()
        second.refresh_from_db()
        assert (first.stock, second.stock) == (5, 1)
