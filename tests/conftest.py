from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from marketplace.customers.models import Customer
from marketplace.notifications.dispatcher import NotificationDispatcher, RealtimeBroadcaster
from marketplace.notifications.realtime import InMemoryRealtimeChannel
from marketplace.orders.dtos import CartLineDTO, PlaceOrderDTO, ShippingAddressDTO
from marketplace.orders.services import build_fulfillment_coordinator
from marketplace.payments.gateway import reset_gateway, set_gateway
from marketplace.payments.gateway.fake_adapter import FakeGateway
from marketplace.products.models import Product, ProductStatus
from marketplace.products.repositories import DjangoCatalogLookup, ICatalogLookup
from marketplace.sellers.models import Seller

User = get_user_model()

SHIPPING_ADDRESS = {
    "first_name": "Asha",
    "last_name": "Verma",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
    "phone": "9876543210",
}


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def fake_gateway():
    """A fresh fake payment gateway for every test."""
    gateway = FakeGateway()
    set_gateway(gateway)
    yield gateway
    reset_gateway()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_user():
    return User.objects.create_user(username="asha", password="testpass123")


@pytest.fixture()
def customer(customer_user):
    return Customer.objects.create(
        user=customer_user,
        name="Asha Verma",
        email="asha@example.com",
        phone="9876543210",
        is_active=True,
    )


@pytest.fixture()
def seller_x_user():
    return User.objects.create_user(username="gadgets", password="testpass123")


@pytest.fixture()
def seller_x(seller_x_user):
    return Seller.objects.create(
        user=seller_x_user,
        store_name="Gadget Galaxy",
        email="gadgets@example.com",
        contact_number="9800000001",
    )


@pytest.fixture()
def seller_y():
    return Seller.objects.create(
        store_name="Home & Hearth",
        email="home@example.com",
        contact_number="9800000002",
    )


@pytest.fixture()
def staff_user():
    return User.objects.create_user(username="ops", password="testpass123", is_staff=True)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_product():
    counter = {"n": 0}

    def _make(seller, price="100.00", stock=10, **extra):
        counter["n"] += 1
        defaults = {
            "sku": f"SKU-{counter['n']:04d}",
            "name": f"Product {counter['n']}",
            "delivery_days": 5,
            "low_stock_threshold": 2,
            "status": ProductStatus.ACTIVE,
        }
        defaults.update(extra)
        return Product.objects.create(
            seller=seller, price=Decimal(price), stock=stock, **defaults
        )

    return _make


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


@pytest.fixture()
def realtime_channel():
    return InMemoryRealtimeChannel()


@pytest.fixture()
def coordinator(realtime_channel):
    return build_fulfillment_coordinator(
        dispatcher=NotificationDispatcher(),
        broadcaster=RealtimeBroadcaster(realtime_channel),
    )


@pytest.fixture()
def checkout_dto():
    def _build(customer, lines, payment_method="cod", idempotency_key=None):
        return PlaceOrderDTO(
            customer_id=customer.id,
            lines=[
                CartLineDTO(product_id=product.id, quantity=quantity)
                for product, quantity in lines
            ],
            shipping_address=ShippingAddressDTO(**SHIPPING_ADDRESS),
            payment_method=payment_method,
            idempotency_key=idempotency_key,
        )

    return _build


@pytest.fixture()
def place_order(coordinator, checkout_dto):
    """Place a single-seller order and return it."""

    def _place(customer, lines, payment_method="cod"):
        result = coordinator.place_order(checkout_dto(customer, lines, payment_method))
        assert len(result.created) == 1, result.failed
        return result.created[0]

    return _place


# ---------------------------------------------------------------------------
# Stock races
# ---------------------------------------------------------------------------


class StaleCatalog(ICatalogLookup):
    """Reports the stock seen when the cart was validated, not the live stock."""

    def __init__(self, stock_seen: dict) -> None:
        self._live = DjangoCatalogLookup()
        self._stock_seen = stock_seen

    def get_active_product(self, product_id):
        product = self._live.get_active_product(product_id)
        return replace(product, stock=self._stock_seen.get(product_id, product.stock))


@pytest.fixture()
def stale_coordinator(realtime_channel):
    """Coordinator whose cart validation sees ``stock_seen`` instead of live stock."""

    def _build(stock_seen):
        return build_fulfillment_coordinator(
            catalog_lookup=StaleCatalog(stock_seen),
            broadcaster=RealtimeBroadcaster(realtime_channel),
        )

    return _build
