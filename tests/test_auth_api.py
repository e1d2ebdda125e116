"""
Registration, login and profile endpoints.
"""

from jose import jwt

from tests.conftest import PASSWORD, auth_headers


def register(client, **overrides):
    payload = {"email": "jane@example.com", "password": PASSWORD, "name": "Jane"}
    payload.update(overrides)
    return client.post("/auth/register", json=payload)


class TestRegister:

    def test_register_defaults_to_customer(self, client):
        response = register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "User registered successfully"
        assert body["user"]["email"] == "jane@example.com"
        assert body["user"]["role"] == "customer"
        assert "password" not in body["user"]
        assert "password_hash" not in body["user"]

    def test_register_with_role(self, client):
        response = register(client, role="restaurant_owner")
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "restaurant_owner"

    def test_duplicate_email_conflicts(self, client):
        assert register(client).status_code == 201

        response = register(client, name="Someone Else")
        assert response.status_code == 409
        assert response.json() == {"error": "Email already registered"}

    def test_missing_field(self, client):
        response = client.post("/auth/register", json={"email": "x@example.com", "name": "X"})
        assert response.status_code == 400
        assert response.json() == {"error": "password is required"}

    def test_invalid_email(self, client):
        response = register(client, email="not-an-email")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid email"}

    def test_unknown_role(self, client):
        response = register(client, role="superuser")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid role"}


class TestLogin:

    def test_login_returns_token_for_identity(self, client, settings):
        user = register(client).json()["user"]

        response = client.post("/auth/login", json={"email": "jane@example.com", "password": PASSWORD})

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["id"] == user["id"]
        claims = jwt.decode(body["token"], settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        assert claims["sub"] == str(user["id"])
        assert claims["email"] == "jane@example.com"
        assert claims["role"] == "customer"
        assert "exp" in claims

    def test_wrong_password_and_unknown_email_look_the_same(self, client):
        register(client)

        wrong_password = client.post(
            "/auth/login", json={"email": "jane@example.com", "password": "nope"}
        )
        unknown_email = client.post(
            "/auth/login", json={"email": "ghost@example.com", "password": PASSWORD}
        )

        assert wrong_password.status_code == 401
        assert unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json() == {"error": "Invalid email or password"}

    def test_missing_password(self, client):
        response = client.post("/auth/login", json={"email": "jane@example.com"})
        assert response.status_code == 400
        assert response.json() == {"error": "password is required"}


class TestProfile:

    def test_profile_of_caller(self, client, customer):
        response = client.get("/auth/profile", headers=customer["headers"])

        assert response.status_code == 200
        assert response.json()["user"] == customer["user"]

    def test_no_token(self, client):
        response = client.get("/auth/profile")
        assert response.status_code == 401
        assert response.json() == {"error": "Access token required"}

    def test_invalid_token(self, client):
        response = client.get("/auth/profile", headers=auth_headers("garbage"))
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    def test_token_of_deleted_user(self, client, customer):
        assert client.delete(f"/users/{customer['user']['id']}", headers=customer["headers"]).status_code == 200

        response = client.get("/auth/profile", headers=customer["headers"])
        assert response.status_code == 404
        assert response.json() == {"error": "User not found"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "healthy"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}


def test_root(client, settings):
    body = client.get("/").json()
    assert body["version"] == settings.app_version
    assert body["health"] == "/health"


def test_unauthorized_advertises_bearer(client):
    response = client.get("/auth/profile")
    assert response.headers["www-authenticate"] == "Bearer"
