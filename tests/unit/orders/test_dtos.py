"""Unit tests for Order DTOs.

Covers:
- CartLineDTO: quantity validation, frozen immutability.
- ShippingAddressDTO: pincode and phone validation.
- PlaceOrderDTO: non-empty cart, duplicate line check.
- OrderBatchResult and Actor helpers.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from pydantic import ValidationError

from marketplace.orders.dtos import (
    Actor,
    CartLineDTO,
    FailedSellerDTO,
    OrderBatchResult,
    PlaceOrderDTO,
    ShippingAddressDTO,
)

pytestmark = pytest.mark.unit

ADDRESS = {
    "first_name": "Asha",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
    "phone": "9876543210",
}


class TestCartLineDTO:
    def test_valid_line(self):
        dto = CartLineDTO(product_id=uuid4(), quantity=3)
        assert dto.quantity == 3
        assert dto.variant == ""

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity(self, quantity):
        with pytest.raises(ValidationError, match="at least 1"):
            CartLineDTO(product_id=uuid4(), quantity=quantity)

    def test_frozen(self):
        dto = CartLineDTO(product_id=uuid4(), quantity=1)
        with pytest.raises(ValidationError):
            dto.quantity = 5


class TestShippingAddressDTO:
    def test_phone_separators_are_stripped(self):
        dto = ShippingAddressDTO(**{**ADDRESS, "phone": "+91 98765-43210"})
        assert dto.phone == "919876543210"

    @pytest.mark.parametrize("pincode", ["5600", "56000A", "5600011"])
    def test_invalid_pincode(self, pincode):
        with pytest.raises(ValidationError, match="Pincode"):
            ShippingAddressDTO(**{**ADDRESS, "pincode": pincode})

    @pytest.mark.parametrize("phone", ["12345", "9" * 16, "98765abcde"])
    def test_invalid_phone(self, phone):
        with pytest.raises(ValidationError, match="Phone"):
            ShippingAddressDTO(**{**ADDRESS, "phone": phone})


class TestPlaceOrderDTO:
    def _build(self, lines, **extra):
        return PlaceOrderDTO(
            customer_id=uuid4(),
            lines=lines,
            shipping_address=ADDRESS,
            payment_method="upi",
            **extra,
        )

    def test_valid(self):
        dto = self._build([CartLineDTO(product_id=uuid4(), quantity=1)])
        assert dto.payment_method == "upi"
        assert dto.idempotency_key is None

    def test_empty_lines(self):
        with pytest.raises(ValidationError, match="at least one line"):
            self._build([])

    def test_duplicate_lines(self):
        product_id = uuid4()
        with pytest.raises(ValidationError, match="Duplicate"):
            self._build(
                [
                    CartLineDTO(product_id=product_id, quantity=1),
                    CartLineDTO(product_id=product_id, quantity=2),
                ]
            )

    def test_same_product_different_variant_allowed(self):
        product_id = uuid4()
        dto = self._build(
            [
                CartLineDTO(product_id=product_id, quantity=1, variant="red"),
                CartLineDTO(product_id=product_id, quantity=1, variant="blue"),
            ]
        )
        assert len(dto.lines) == 2

    def test_unknown_payment_method(self):
        with pytest.raises(ValidationError):
            PlaceOrderDTO(
                customer_id=uuid4(),
                lines=[CartLineDTO(product_id=uuid4(), quantity=1)],
                shipping_address=ADDRESS,
                payment_method="barter",
            )


class TestOrderBatchResult:
    def test_partial(self):
        failure = FailedSellerDTO(seller_id=uuid4(), code="insufficient_stock", reason="x")
        result = OrderBatchResult(checkout_id=uuid4(), created=[object()], failed=[failure])
        assert result.is_partial is True
        assert result.all_failed is False

    def test_all_failed(self):
        failure = FailedSellerDTO(seller_id=uuid4(), code="insufficient_stock", reason="x")
        result = OrderBatchResult(checkout_id=uuid4(), failed=[failure])
        assert result.is_partial is False
        assert result.all_failed is True


class TestActor:
    def test_labels(self):
        customer_id = uuid4()
        assert Actor.system().label == "system"
        assert Actor.customer(customer_id).label == f"customer:{customer_id}"
        assert Actor.system().is_system is True
