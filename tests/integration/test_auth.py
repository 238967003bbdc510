"""Integration tests for SimpleJWT authentication.

Validates:
  - /health is public (plain Django view, no DRF).
  - Order and payment endpoints return 401 without a valid bearer token.
  - A token obtained from /api/v1/auth/token/ opens the order API.
"""

import pytest

pytestmark = pytest.mark.integration

TOKEN_URL = "/api/v1/auth/token/"
ORDERS_URL = "/api/v1/orders/"


class TestPublicEndpoints:
    def test_health_is_public(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestProtectedEndpoints:
    """All DRF endpoints require a valid JWT by default."""

    @pytest.mark.parametrize("url", [ORDERS_URL, "/api/v1/payments/intents/"])
    def test_no_token_returns_401(self, api_client, url):
        response = api_client.get(url)
        assert response.status_code == 401

    def test_invalid_token_returns_401(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Bearer invalid.token.here")
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401

    def test_malformed_auth_header_returns_401(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION="Token some-token")
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401

    def test_401_includes_www_authenticate_header(self, api_client):
        response = api_client.get(ORDERS_URL)
        assert response.status_code == 401
        assert "Bearer" in response.get("WWW-Authenticate", "")


class TestTokenFlow:
    def test_obtained_token_lists_orders(self, api_client, customer):
        tokens = api_client.post(
            TOKEN_URL, {"username": "asha", "password": "testpass123"}, format="json"
        )
        assert tokens.status_code == 200

        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens.json()['access']}")
        response = api_client.get(ORDERS_URL)

        assert response.status_code == 200

    def test_wrong_password_is_401(self, api_client, customer):
        response = api_client.post(
            TOKEN_URL, {"username": "asha", "password": "nope"}, format="json"
        )
        assert response.status_code == 401
