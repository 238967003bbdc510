import logging
import uuid

import pytest
from rest_framework.test import APIClient

pytestmark = pytest.mark.integration


class TestCorrelationIdMiddleware:
    def test_returns_provided_request_id(self, client):
        custom_id = "my-custom-request-id-123"
        response = client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        assert response["X-Request-ID"] == custom_id

    def test_generates_uuid_when_no_request_id(self, client):
        response = client.get("/health")
        request_id = response["X-Request-ID"]
        parsed = uuid.UUID(request_id, version=4)
        assert str(parsed) == request_id

    def test_malformed_request_id_is_replaced(self, client):
        response = client.get("/health", HTTP_X_REQUEST_ID="bad id\nwith newline")
        request_id = response["X-Request-ID"]
        assert request_id != "bad id\nwith newline"
        assert str(uuid.UUID(request_id, version=4)) == request_id

    def test_echoed_on_api_errors(self, api_client):
        response = api_client.get("/api/v1/orders/", HTTP_X_REQUEST_ID="checkout-trace-1")
        assert response.status_code == 401
        assert response["X-Request-ID"] == "checkout-trace-1"

    def test_correlation_id_in_checkout_logs(
        self, customer, seller_x, make_product, caplog
    ):
        client = APIClient()
        client.force_authenticate(user=customer.user)
        product = make_product(seller_x)
        custom_id = "log-test-correlation-456"

        with caplog.at_level(logging.INFO):
            client.post(
                "/api/v1/orders/checkout/",
                {
                    "items": [{"product_id": str(product.id), "quantity": 1}],
                    "shipping_address": {
                        "first_name": "Asha",
                        "last_name": "Verma",
                        "address": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "pincode": "560001",
                        "phone": "9876543210",
                    },
                    "payment_method": "cod",
                },
                format="json",
                HTTP_X_REQUEST_ID=custom_id,
            )

        messages = [record.getMessage() for record in caplog.records]
        assert any(custom_id in message for message in messages), messages
