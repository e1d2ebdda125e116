"""
Pytest configuration: a fresh app on a temporary SQLite database per test.
"""

from typing import Callable

import pytest
from fastapi.testclient import TestClient

from food_ordering.core.config import Settings
from food_ordering.main import create_app

PASSWORD = "s3cret-pass"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret_key="test-secret-key-for-testing-only",
        bcrypt_rounds=4,
        order_cancellation_window_minutes=15,
    )


@pytest.fixture
def client(settings):
    """Create test client; the lifespan creates the tables."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(client) -> Callable[..., dict]:
    """
    Register and log in a user.

    Returns a dict with the public ``user`` record, its ``token`` and ready
    to use ``headers``.
    """
    counter = {"n": 0}

    def _make(role: str = "customer", email: str = None, name: str = None) -> dict:
        counter["n"] += 1
        email = email or f"{role}{counter['n']}@example.com"
        response = client.post(
            "/auth/register",
            json={
                "email": email,
                "password": PASSWORD,
                "name": name or f"{role.title()} {counter['n']}",
                "role": role,
            },
        )
        assert response.status_code == 201, response.text
        login = client.post("/auth/login", json={"email": email, "password": PASSWORD})
        assert login.status_code == 200, login.text
        token = login.json()["token"]
        return {
            "user": response.json()["user"],
            "token": token,
            "headers": auth_headers(token),
        }

    return _make


@pytest.fixture
def customer(make_user) -> dict:
    return make_user("customer")


@pytest.fixture
def owner(make_user) -> dict:
    return make_user("restaurant_owner")


@pytest.fixture
def other_owner(make_user) -> dict:
    return make_user("restaurant_owner")


@pytest.fixture
def admin(make_user) -> dict:
    return make_user("admin")


@pytest.fixture
def restaurant(client, owner) -> dict:
    response = client.post(
        "/restaurants",
        json={"name": "Luigi's Trattoria", "cuisine": "italian", "rating": 4.5},
        headers=owner["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["restaurant"]


@pytest.fixture
def menu(client, owner, restaurant) -> list[dict]:
    items = []
    for name, category, price in [
        ("Pizza Margherita", "pizza", 14.99),
        ("Caesar Salad", "salad", 8.99),
    ]:
        response = client.post(
            f"/restaurants/{restaurant['id']}/menu",
            json={"name": name, "category": category, "price": price},
            headers=owner["headers"],
        )
        assert response.status_code == 201, response.text
        items.append(response.json()["menu_item"])
    return items
