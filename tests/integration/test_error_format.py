"""Integration tests for standardized error responses."""

import pytest
from rest_framework.test import APIClient

pytestmark = pytest.mark.integration


@pytest.fixture()
def customer_client(customer):
    client = APIClient()
    client.force_authenticate(user=customer.user)
    return client


def assert_standard_body(data):
    assert "type" in data
    assert isinstance(data["errors"], list)
    assert data["errors"]
    for error in data["errors"]:
        assert set(error) == {"code", "detail", "attr"}


class TestStandardizedErrors:
    def test_auth_error_has_standard_format(self, api_client):
        response = api_client.get("/api/v1/orders/")

        assert response.status_code == 401
        data = response.json()
        assert data["type"] == "client_error"
        assert_standard_body(data)

    def test_malformed_json_has_standard_format(self, customer_client):
        response = customer_client.post(
            "/api/v1/orders/checkout/", data="{", content_type="application/json"
        )

        assert response.status_code == 400
        assert_standard_body(response.json())

    def test_field_errors_carry_attr(self, customer_client):
        response = customer_client.post("/api/v1/orders/checkout/", {}, format="json")

        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "validation_error"
        assert_standard_body(data)
        assert any(error["attr"] == "items" for error in data["errors"])

    def test_domain_error_has_standard_format(
        self, customer_client, customer, seller_x, make_product, place_order
    ):
        order = place_order(customer, [(make_product(seller_x), 1)])

        response = customer_client.post(
            f"/api/v1/orders/{order.id}/return/",
            {"reason": "Changed my mind"},
            format="json",
        )

        assert response.status_code == 409
        data = response.json()
        assert_standard_body(data)
        assert data["errors"][0]["code"] == "invalid_transition"
