"""Fixtures for HTTP API tests."""

import pytest
from fastapi.testclient import TestClient

from agrimarket.infrastructure.config import settings
from agrimarket.main import app
from factories import ADMIN_ID, BUYER_ID, SELLER_ID, actor_headers


@pytest.fixture
def client() -> TestClient:
    """Test client without credentials."""
    return TestClient(app)


@pytest.fixture
def auth_client() -> TestClient:
    """Test client with valid API key authentication."""
    return TestClient(
        app,
        headers={"Authorization": f"Bearer {settings.api_key}"},
    )


@pytest.fixture
def as_buyer() -> dict[str, str]:
    return actor_headers(BUYER_ID, "buyer")


@pytest.fixture
def as_seller() -> dict[str, str]:
    return actor_headers(SELLER_ID, "farmer")


@pytest.fixture
def as_admin() -> dict[str, str]:
    return actor_headers(ADMIN_ID, "admin")


@pytest.fixture
def order_payload() -> dict:
    """Order of 2 kg tomatoes at 25 and 1 kg onions at 60."""
    return {
        "seller_id": SELLER_ID,
        "seller_name": "Green Valley Farm",
        "buyer_name": "Asha Traders",
        "items": [
            {"product_id": "tomato", "name": "Tomatoes", "quantity": 2, "unit_price": 25},
            {"product_id": "onion", "name": "Red Onions", "quantity": 1, "unit_price": 60},
        ],
        "shipping_address": {
            "street": "12 Market Road",
            "city": "Nashik",
            "state": "Maharashtra",
            "postal_code": "422001",
        },
        "payment_method": "upi",
        "currency": "INR",
    }


@pytest.fixture
def place_order(auth_client, as_buyer, order_payload):
    """Place an order as the buyer and return the response body."""

    def _place(**overrides) -> dict:
        response = auth_client.post("/orders", json={**order_payload, **overrides}, headers=as_buyer)
        assert response.status_code == 201, response.text
        return response.json()

    return _place
