"""Integration tests for multi-seller checkout through FulfillmentCoordinator.

Covers:
- A cart spanning two sellers yields one order per seller sharing a checkout id.
- A seller whose stock runs out fails alone; its sibling's order is still created.
- Retrying with the same idempotency key returns the first attempt's orders
  and failed sellers; the key is scoped to the customer.
- An order that cannot be saved fails its seller, not the whole checkout.
- A retry of an interrupted checkout places only the missing sellers.
- ``OrderPlaced`` lands in the outbox; the customer is emailed.
- Dropping to the low-stock threshold alerts the seller.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from django.core import mail
from django.db import DatabaseError, IntegrityError

from marketplace.core.models import EventStatus, OutboxEvent
from marketplace.customers.exceptions import InactiveCustomer
from marketplace.customers.models import Customer
from marketplace.notifications.realtime import order_room, seller_inventory_room
from marketplace.orders.constants import OrderPaymentStatus, OrderStatus
from marketplace.orders.exceptions import CartValidationError
from marketplace.orders.models import Checkout, Order
from marketplace.orders.repositories import OrderDjangoRepository
from marketplace.orders.services import build_fulfillment_coordinator

pytestmark = pytest.mark.integration


def test_cart_is_split_into_one_order_per_seller(
    coordinator, checkout_dto, customer, seller_x, seller_y, make_product
):
    monitor = make_product(seller_x, price="250.00")
    lamp = make_product(seller_y, price="1500.00")

    result = coordinator.place_order(checkout_dto(customer, [(monitor, 2), (lamp, 1)]))

    assert not result.failed
    assert len(result.created) == 2
    by_seller = {order.seller_id: order for order in result.created}
    assert by_seller[seller_x.id].total == Decimal("689.00")
    assert by_seller[seller_y.id].total == Decimal("1770.00")
    assert {order.checkout_id for order in result.created} == {result.checkout_id}

    for order in result.created:
        assert order.status == OrderStatus.PENDING
        assert order.payment_status == OrderPaymentStatus.PENDING
        assert order.shipping_address["pincode"] == "560001"

    monitor.refresh_from_db()
    lamp.refresh_from_db()
    assert monitor.stock == 8
    assert lamp.stock == 9


def test_out_of_stock_seller_fails_alone(
    stale_coordinator, checkout_dto, customer, seller_x, seller_y, make_product
):
    keyboard = make_product(seller_x, stock=5)
    mouse = make_product(seller_x, stock=0)
    lamp = make_product(seller_y, stock=3)
    coordinator = stale_coordinator({mouse.id: 1})

    result = coordinator.place_order(
        checkout_dto(customer, [(keyboard, 1), (mouse, 1), (lamp, 1)])
    )

    assert result.is_partial
    assert [order.seller_id for order in result.created] == [seller_y.id]
    assert len(result.failed) == 1
    assert result.failed[0].seller_id == seller_x.id
    assert result.failed[0].code == "insufficient_stock"

    # the failed seller's other line was released
    keyboard.refresh_from_db()
    lamp.refresh_from_db()
    assert keyboard.stock == 5
    assert lamp.stock == 2
    assert not Order.objects.filter(seller=seller_x).exists()


def test_cart_rejection_reserves_nothing(
    coordinator, checkout_dto, customer, seller_x, make_product
):
    keyboard = make_product(seller_x, stock=5)
    mouse = make_product(seller_x, stock=1)

    with pytest.raises(CartValidationError) as exc_info:
        coordinator.place_order(checkout_dto(customer, [(keyboard, 1), (mouse, 4)]))

    assert exc_info.value.errors[0]["code"] == "insufficient_stock"
    keyboard.refresh_from_db()
    assert keyboard.stock == 5
    assert Order.objects.count() == 0


def test_inactive_customer_cannot_check_out(
    coordinator, checkout_dto, customer, seller_x, make_product
):
    product = make_product(seller_x)
    customer.is_active = False
    customer.save()

    with pytest.raises(InactiveCustomer):
        coordinator.place_order(checkout_dto(customer, [(product, 1)]))


def test_retry_with_idempotency_key_returns_first_orders(
    coordinator, checkout_dto, customer, seller_x, seller_y, make_product
):
    monitor = make_product(seller_x)
    lamp = make_product(seller_y)
    dto = checkout_dto(customer, [(monitor, 1), (lamp, 1)], idempotency_key="cart-42")

    first = coordinator.place_order(dto)
    second = coordinator.place_order(dto)

    assert second.checkout_id == first.checkout_id
    assert {o.id for o in second.created} == {o.id for o in first.created}
    assert Order.objects.count() == 2
    monitor.refresh_from_db()
    assert monitor.stock == 9
    assert Checkout.objects.filter(customer=customer).count() == 1


def test_idempotency_key_is_scoped_to_the_customer(
    coordinator, checkout_dto, customer, seller_x, make_product
):
    monitor = make_product(seller_x)
    other = Customer.objects.create(name="Ravi Kumar", email="ravi.com")

    mine = coordinator.place_order(
        checkout_dto(customer, [(monitor, 1)], idempotency_key="cart-1")
    )
    theirs = coordinator.place_order(
        checkout_dto(other, [(monitor, 2)], idempotency_key="cart-1")
    )

    assert theirs.checkout_id != mine.checkout_id
    assert [order.customer_id for order in theirs.created] == [other.id]
    assert theirs.created[0].id != mine.created[0].id
    monitor.refresh_from_db()
    assert monitor.stock == 7


def test_retry_of_partial_checkout_reports_the_same_failures(
    stale_coordinator, checkout_dto, customer, seller_x, seller_y, make_product
):
    mouse = make_product(seller_x, stock=0)
    lamp = make_product(seller_y, stock=3)
    coordinator = stale_coordinator({mouse.id: 1})
    dto = checkout_dto(customer, [(mouse, 1), (lamp, 1)], idempotency_key="cart-7")

    first = coordinator.place_order(dto)
    retry = coordinator.place_order(dto)

    assert first.is_partial
    assert retry.is_partial
    assert [o.id for o in retry.created] == [o.id for o in first.created]
    assert [(f.seller_id, f.code) for f in retry.failed] == [
        (seller_x.id, "insufficient_stock")
    ]
    assert retry.failed[0].reason == first.failed[0].reason
    lamp.refresh_from_db()
    assert lamp.stock == 2


class CollidingOrderRepository(OrderDjangoRepository):
    """Fails to save the order for one seller, as on an order-number collision."""

    def __init__(self, seller_id) -> None:
        super().__init__()
        self._seller_id = seller_id

    def create_from_draft(self, draft, **kwargs):
        if draft.seller_id == self._seller_id:
            raise IntegrityError("duplicate key value violates unique constraint")
        return super().create_from_draft(draft, **kwargs)


def test_order_save_conflict_fails_only_that_seller(
    checkout_dto, customer, seller_x, seller_y, make_product
):
    monitor = make_product(seller_x, stock=5)
    lamp = make_product(seller_y, stock=5)
    coordinator = build_fulfillment_coordinator(
        order_repository=CollidingOrderRepository(seller_x.id)
    )

    result = coordinator.place_order(checkout_dto(customer, [(monitor, 1), (lamp, 1)]))

    assert [order.seller_id for order in result.created] == [seller_y.id]
    assert [(f.seller_id, f.code) for f in result.failed] == [(seller_x.id, "order_conflict")]
    monitor.refresh_from_db()
    lamp.refresh_from_db()
    assert monitor.stock == 5
    assert lamp.stock == 4
    checkout = Checkout.objects.get(pk=result.checkout_id)
    assert checkout.failed_sellers[0]["code"] == "order_conflict"


class InterruptedOrderRepository(OrderDjangoRepository):
    """Loses the database connection while saving one seller's order."""

    def __init__(self, seller_id) -> None:
        super().__init__()
        self._seller_id = seller_id

    def create_from_draft(self, draft, **kwargs):
        if draft.seller_id == self._seller_id:
            raise DatabaseError("server closed the connection unexpectedly")
        return super().create_from_draft(draft, **kwargs)


def test_retry_resumes_an_interrupted_checkout(
    coordinator, checkout_dto, customer, seller_x, seller_y, make_product
):
    monitor = make_product(seller_x, stock=5)
    lamp = make_product(seller_y, stock=5)
    dto = checkout_dto(customer, [(monitor, 1), (lamp, 1)], idempotency_key="cart-9")
    interrupted = build_fulfillment_coordinator(
        order_repository=InterruptedOrderRepository(seller_y.id)
    )

    with pytest.raises(DatabaseError):
        interrupted.place_order(dto)
    assert not Checkout.objects.get(idempotency_key="cart-9").is_complete

    result = coordinator.place_order(dto)

    assert not result.failed
    assert {order.seller_id for order in result.created} == {seller_x.id, seller_y.id}
    assert Order.objects.filter(checkout_id=result.checkout_id).count() == 2
    monitor.refresh_from_db()
    lamp.refresh_from_db()
    assert monitor.stock == 4
    assert lamp.stock == 4
    assert Checkout.objects.get(pk=result.checkout_id).is_complete


def test_checkout_writes_order_placed_to_outbox(
    coordinator, checkout_dto, customer, seller_x, make_product
):
    product = make_product(seller_x)

    result = coordinator.place_order(checkout_dto(customer, [(product, 1)]))
    order = result.created[0]

    event = OutboxEvent.objects.get(event_type="OrderPlaced", aggregate_id=str(order.id))
    assert event.status == EventStatus.PENDING
    assert event.payload["order_number"] == order.order_number
    assert event.payload["checkout_id"] == str(result.checkout_id)
    assert event.payload["total"] == str(order.total)


def test_checkout_notifies_customer_and_broadcasts(
    coordinator, checkout_dto, customer, seller_x, make_product, realtime_channel
):
    product = make_product(seller_x)

    order = coordinator.place_order(checkout_dto(customer, [(product, 1)])).created[0]

    assert len(mail.outbox) == 1
    assert mail.outbox[0].subject == f"Order Confirmation - #{order.order_number}"
    assert mail.outbox[0].to == ["asha@example.com"]

    [payload] = realtime_channel.messages_for(order_room(order.id))
    assert payload["status"] == OrderStatus.PENDING
    assert payload["note"] == "Order placed"


def test_low_stock_alerts_the_seller(
    coordinator, checkout_dto, customer, seller_x, make_product, realtime_channel
):
    product = make_product(seller_x, stock=4)

    coordinator.place_order(checkout_dto(customer, [(product, 2)]))

    [alert] = realtime_channel.messages_for(seller_inventory_room(seller_x.id))
    assert alert == {"product_id": product.id, "remaining": 2}
    subjects = [message.subject for message in mail.outbox]
    assert f"Low Stock Alert - {product.sku}" in subjects


def test_no_low_stock_alert_above_threshold(
    coordinator, checkout_dto, customer, seller_x, make_product, realtime_channel
):
    product = make_product(seller_x, stock=10)

    coordinator.place_order(checkout_dto(customer, [(product, 1)]))

    assert realtime_channel.messages_for(seller_inventory_room(seller_x.id)) == []
