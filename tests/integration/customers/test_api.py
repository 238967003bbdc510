"""Integration tests for phone verification.

Covers POST /api/v1/customers/me/phone/code/ and verify/.
"""

from __future__ import annotations

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

pytestmark = pytest.mark.integration

CODE_URL = "/api/v1/customers/me/phone/code/"
VERIFY_URL = "/api/v1/customers/me/phone/verify/"


@pytest.fixture()
def customer_client(customer):
    cache.clear()
    client = APIClient()
    client.force_authenticate(user=customer.user)
    return client


def pending_code(customer):
    return cache.get(f"otp:phone:{customer.id}:{customer.phone}")["code"]


class TestPhoneVerification:
    def test_customer_verifies_phone(self, customer_client, customer):
        sent = customer_client.post(CODE_URL)
        assert sent.status_code == 202
        assert sent.json()["sent"] is True

        response = customer_client.post(
            VERIFY_URL, {"code": pending_code(customer)}, format="json"
        )

        assert response.status_code == 200
        assert response.json()["verified"] is True
        customer.refresh_from_db()
        assert customer.phone_verified_at is not None

    def test_wrong_code_is_400(self, customer_client, customer):
        customer_client.post(CODE_URL)
        wrong = "000000" if pending_code(customer) != "000000" else "111111"

        response = customer_client.post(VERIFY_URL, {"code": wrong}, format="json")

        assert response.status_code == 400
        assert response.json()["errors"][0]["code"] == "verification_failed"

    def test_malformed_code_is_a_validation_error(self, customer_client):
        response = customer_client.post(VERIFY_URL, {"code": "12ab"}, format="json")

        assert response.status_code == 400
        assert response.json()["type"] == "validation_error"
        assert response.json()["errors"][0]["attr"] == "code"

    def test_seller_cannot_verify_a_customer_phone(self, seller_x):
        client = APIClient()
        client.force_authenticate(user=seller_x.user)

        response = client.post(CODE_URL)

        assert response.status_code == 403

    def test_unauthenticated_request_is_rejected(self, api_client):
        response = api_client.post(CODE_URL)

        assert response.status_code == 401
