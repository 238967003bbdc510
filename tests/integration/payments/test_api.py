"""Integration tests for the Payment API endpoints.

Covers:
- POST /api/v1/payments/intents/ for online orders (201) and COD (409).
- POST /api/v1/payments/verify/ confirming the order, rejecting tampering.
- POST /api/v1/payments/{id}/refund/ partial and full.
- GET /api/v1/payments/{id}/ and the payment history at GET /api/v1/payments/.
- A capture that arrives after cancellation is refunded and answered with 409.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from marketplace.customers.models import Customer
from marketplace.orders.constants import OrderPaymentStatus, OrderStatus
from marketplace.orders.models import Order
from marketplace.payments.constants import PaymentStatus
from marketplace.payments.models import Payment

pytestmark = pytest.mark.integration

INTENTS_URL = "/api/v1/payments/intents/"
VERIFY_URL = "/api/v1/payments/verify/"
PAYMENTS_URL = "/api/v1/payments/"


@pytest.fixture()
def customer_client(customer):
    client = APIClient()
    client.force_authenticate(user=customer.user)
    return client


@pytest.fixture()
def seller_client(seller_x):
    client = APIClient()
    client.force_authenticate(user=seller_x.user)
    return client


@pytest.fixture()
def online_order(customer, seller_x, make_product, place_order):
    product = make_product(seller_x, price="500.00")
    return place_order(customer, [(product, 1)], payment_method="upi")


def open_intent(client, order):
    response = client.post(
        INTENTS_URL, {"order_id": str(order.id), "amount": str(order.total)}, format="json"
    )
    assert response.status_code == 201, response.json()
    return response.json()


def paid_payment(client, fake_gateway, order):
    intent = open_intent(client, order)
    payment_id, signature = fake_gateway.authorize(intent["gateway_order_id"])
    response = client.post(
        VERIFY_URL,
        {
            "gateway_order_id": intent["gateway_order_id"],
            "gateway_payment_id": payment_id,
            "signature": signature,
        },
        format="json",
    )
    assert response.status_code == 200, response.json()
    return Payment.objects.get(pk=intent["id"])


class TestIntents:
    def test_intent_for_online_order(self, customer_client, online_order, settings):
        data = open_intent(customer_client, online_order)

        assert data["gateway_order_id"].startswith("order_fake_")
        assert data["amount"] == "689.00"
        assert data["status"] == PaymentStatus.CREATED
        assert data["key_id"] == settings.RAZORPAY_KEY_ID

    def test_amount_mismatch_is_400(self, customer_client, online_order):
        response = customer_client.post(
            INTENTS_URL, {"order_id": str(online_order.id), "amount": "1.00"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "amount_mismatch"

    def test_cod_order_is_not_eligible(
        self, customer_client, customer, seller_x, make_product, place_order
    ):
        order = place_order(customer, [(make_product(seller_x), 1)])

        response = customer_client.post(
            INTENTS_URL, {"order_id": str(order.id), "amount": str(order.total)}, format="json"
        )

        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "payment_not_eligible"

    def test_gateway_outage_is_502(self, customer_client, online_order, fake_gateway):
        fake_gateway.configure(should_succeed=False)

        response = customer_client.post(
            INTENTS_URL,
            {"order_id": str(online_order.id), "amount": str(online_order.total)},
            format="json",
        )

        assert response.status_code == 502
        assert not Payment.objects.exists()

    def test_only_the_customer_opens_an_intent(self, seller_client, online_order):
        response = seller_client.post(
            INTENTS_URL,
            {"order_id": str(online_order.id), "amount": str(online_order.total)},
            format="json",
        )

        assert response.status_code == 403


class TestVerify:
    def test_valid_callback_confirms_order(self, customer_client, online_order, fake_gateway):
        intent = open_intent(customer_client, online_order)
        payment_id, signature = fake_gateway.authorize(intent["gateway_order_id"])

        response = customer_client.post(
            VERIFY_URL,
            {
                "gateway_order_id": intent["gateway_order_id"],
                "gateway_payment_id": payment_id,
                "signature": signature,
            },
            format="json",
        )

        assert response.status_code == 200
        body = response.json()
        assert body["verified"] is True
        assert body["order"]["status"] == OrderStatus.CONFIRMED
        assert body["order"]["payment_status"] == "paid"

    def test_tampered_signature_is_400(self, customer_client, online_order, fake_gateway):
        intent = open_intent(customer_client, online_order)
        payment_id, _ = fake_gateway.authorize(intent["gateway_order_id"])

        response = customer_client.post(
            VERIFY_URL,
            {
                "gateway_order_id": intent["gateway_order_id"],
                "gateway_payment_id": payment_id,
                "signature": "0" * 64,
            },
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "signature_invalid"
        assert Order.objects.get(pk=online_order.pk).status == OrderStatus.PENDING

    def test_declined_payment_is_402(self, customer_client, online_order, fake_gateway):
        intent = open_intent(customer_client, online_order)
        payment_id, signature = fake_gateway.authorize(intent["gateway_order_id"], status="failed")

        response = customer_client.post(
            VERIFY_URL,
            {
                "gateway_order_id": intent["gateway_order_id"],
                "gateway_payment_id": payment_id,
                "signature": signature,
            },
            format="json",
        )

        assert response.status_code == 402
        assert Payment.objects.get(pk=intent["id"]).status == PaymentStatus.FAILED

    def test_unknown_gateway_order_is_404(self, customer_client):
        response = customer_client.post(
            VERIFY_URL,
            {"gateway_order_id": "order_missing", "gateway_payment_id": "pay_x", "signature": "x"},
            format="json",
        )

        assert response.status_code == 404


class TestRefund:
    def test_partial_then_full_refund(
        self, customer_client, seller_client, online_order, fake_gateway
    ):
        payment = paid_payment(customer_client, fake_gateway, online_order)
        url = f"/api/v1/payments/{payment.id}/refund/"

        partial = seller_client.post(
            url, {"amount": "189.00", "reason": "Damaged box"}, format="json"
        )
        assert partial.status_code == 200
        assert partial.json()["fully_refunded"] is False
        assert partial.json()["payment"]["refundable_amount"] == "500.00"

        rest = seller_client.post(url, {}, format="json")
        assert rest.status_code == 200
        assert rest.json()["amount"] == "500.00"
        assert rest.json()["fully_refunded"] is True
        assert rest.json()["payment"]["status"] == PaymentStatus.REFUNDED

        payment.refresh_from_db()
        assert payment.refund_amount == Decimal("689.00")

    def test_over_refund_is_400(self, customer_client, seller_client, online_order, fake_gateway):
        payment = paid_payment(customer_client, fake_gateway, online_order)

        response = seller_client.post(
            f"/api/v1/payments/{payment.id}/refund/", {"amount": "700.00"}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "refund_error"

    def test_customer_cannot_refund(self, customer_client, online_order, fake_gateway):
        payment = paid_payment(customer_client, fake_gateway, online_order)

        response = customer_client.post(f"/api/v1/payments/{payment.id}/refund/", {}, format="json")

        assert response.status_code == 403


class TestRetrieve:
    def test_order_parties_can_read_payment(
        self, customer_client, seller_client, online_order
    ):
        intent = open_intent(customer_client, online_order)

        for client in (customer_client, seller_client):
            response = client.get(f"/api/v1/payments/{intent['id']}/")
            assert response.status_code == 200
            assert response.json()["order_number"] == online_order.order_number

    def test_malformed_payment_id_is_400(self, customer_client):
        response = customer_client.get("/api/v1/payments/not-a-uuid/")

        assert response.status_code == 400
        body = response.json()
        assert body["type"] == "validation_error"
        assert body["errors"][0]["attr"] == "id"


class TestList:
    def test_history_is_scoped_to_the_customer(
        self, customer_client, online_order, seller_x, make_product, place_order, django_user_model
    ):
        other = Customer.objects.create(
            user=django_user_model.objects.create_user(username="ravi", password="x"),
            name="Ravi Kumar",
            email="ravi.com",
        )
        other_order = place_order(other, [(make_product(seller_x), 1)], payment_method="upi")
        other_client = APIClient()
        other_client.force_authenticate(user=other.user)
        mine = open_intent(customer_client, online_order)
        open_intent(other_client, other_order)

        response = customer_client.get(PAYMENTS_URL)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert [payment["id"] for payment in data["results"]] == [mine["id"]]

    def test_seller_sees_payments_on_their_orders(
        self, customer_client, seller_client, online_order
    ):
        open_intent(customer_client, online_order)

        response = seller_client.get(PAYMENTS_URL)

        assert response.status_code == 200
        assert [p["order_number"] for p in response.json()["results"]] == [
            online_order.order_number
        ]


class TestLateCapture:
    def test_capture_after_cancel_is_refunded(
        self, customer_client, online_order, fake_gateway
    ):
        intent = open_intent(customer_client, online_order)
        cancelled = customer_client.post(
            f"/api/v1/orders/{online_order.id}/cancel/", {}, format="json"
        )
        assert cancelled.status_code == 200
        payment_id, signature = fake_gateway.authorize(intent["gateway_order_id"])

        response = customer_client.post(
            VERIFY_URL,
            {
                "gateway_order_id": intent["gateway_order_id"],
                "gateway_payment_id": payment_id,
                "signature": signature,
            },
            format="json",
        )

        assert response.status_code == 409
        assert response.json()["errors"][0]["code"] == "late_capture_refunded"
        payment = Payment.objects.get(pk=intent["id"])
        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refund_amount == Decimal("689.00")
        assert Order.objects.get(pk=online_order.pk).payment_status == OrderPaymentStatus.REFUNDED
