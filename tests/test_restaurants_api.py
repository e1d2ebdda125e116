"""
Restaurant browsing, management and menus.
"""

import pytest


def create_restaurant(client, caller, **payload):
    payload.setdefault("name", "Sakura")
    return client.post("/restaurants", json=payload, headers=caller["headers"])


class TestCreateRestaurant:

    def test_owner_owns_what_they_create(self, client, owner, customer):
        response = create_restaurant(client, owner, cuisine="japanese", owner_id=customer["user"]["id"])

        assert response.status_code == 201
        restaurant = response.json()["restaurant"]
        assert restaurant["owner_id"] == owner["user"]["id"]
        assert restaurant["cuisine"] == "japanese"

    def test_admin_assigns_owner(self, client, admin, owner):
        response = create_restaurant(client, admin, owner_id=owner["user"]["id"])
        assert response.status_code == 201
        assert response.json()["restaurant"]["owner_id"] == owner["user"]["id"]

    def test_admin_defaults_to_self(self, client, admin):
        response = create_restaurant(client, admin)
        assert response.json()["restaurant"]["owner_id"] == admin["user"]["id"]

    def test_admin_with_unknown_owner(self, client, admin):
        response = create_restaurant(client, admin, owner_id=9999)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid owner"}

    def test_customer_is_forbidden(self, client, customer):
        response = create_restaurant(client, customer)
        assert response.status_code == 403
        assert response.json() == {"error": "Access denied: insufficient role"}

    def test_anonymous_is_unauthorized(self, client):
        assert client.post("/restaurants", json={"name": "X"}).status_code == 401

    def test_name_is_required(self, client, owner):
        response = client.post("/restaurants", json={"cuisine": "thai"}, headers=owner["headers"])
        assert response.status_code == 400
        assert response.json() == {"error": "name is required"}

    @pytest.mark.parametrize("rating", [-1, 5.1])
    def test_rating_out_of_range(self, client, owner, rating):
        response = create_restaurant(client, owner, rating=rating)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid rating"}

    @pytest.mark.parametrize("rating", [0, 5])
    def test_rating_bounds_are_inclusive(self, client, owner, rating):
        response = create_restaurant(client, owner, rating=rating)
        assert response.status_code == 201
        assert response.json()["restaurant"]["rating"] == rating


class TestBrowse:

    @pytest.fixture
    def catalogue(self, client, owner):
        for name, cuisine in [
            ("Pasta Palace", "italian"),
            ("Pizza Planet", "italian"),
            ("Sushi Bar", "japanese"),
        ]:
            create_restaurant(client, owner, name=name, cuisine=cuisine)

    def test_list_is_public(self, client, catalogue):
        response = client.get("/restaurants")

        assert response.status_code == 200
        body = response.json()
        assert [r["name"] for r in body["restaurants"]] == ["Pasta Palace", "Pizza Planet", "Sushi Bar"]
        assert body["pagination"] == {"limit": 20, "offset": 0, "total": 3}

    def test_filter_by_category(self, client, catalogue):
        body = client.get("/restaurants", params={"category": "italian"}).json()
        assert {r["name"] for r in body["restaurants"]} == {"Pasta Palace", "Pizza Planet"}
        assert body["pagination"]["total"] == 2

    def test_search_is_case_insensitive(self, client, catalogue):
        body = client.get("/restaurants", params={"search": "PIZZA"}).json()
        assert [r["name"] for r in body["restaurants"]] == ["Pizza Planet"]

    def test_search_wildcards_match_literally(self, client, owner, catalogue):
        create_restaurant(client, owner, name="100% Vegan")

        by_percent = client.get("/restaurants", params={"search": "%"}).json()
        assert [r["name"] for r in by_percent["restaurants"]] == ["100% Vegan"]
        assert by_percent["pagination"]["total"] == 1

        by_underscore = client.get("/restaurants", params={"search": "_"}).json()
        assert by_underscore["restaurants"] == []
        assert by_underscore["pagination"]["total"] == 0

    def test_pagination(self, client, catalogue):
        body = client.get("/restaurants", params={"limit": 1, "offset": 1}).json()
        assert [r["name"] for r in body["restaurants"]] == ["Pizza Planet"]
        assert body["pagination"] == {"limit": 1, "offset": 1, "total": 3}

    def test_limit_is_capped(self, client):
        assert client.get("/restaurants", params={"limit": 101}).status_code == 400

    def test_get_one(self, client, restaurant):
        response = client.get(f"/restaurants/{restaurant['id']}")
        assert response.status_code == 200
        assert response.json()["restaurant"] == restaurant

    def test_get_missing(self, client):
        response = client.get("/restaurants/9999")
        assert response.status_code == 404
        assert response.json() == {"error": "Restaurant not found"}


class TestUpdateRestaurant:

    def test_partial_update_keeps_other_columns(self, client, owner, restaurant):
        response = client.put(
            f"/restaurants/{restaurant['id']}", json={"name": "X"}, headers=owner["headers"]
        )

        assert response.status_code == 200
        updated = response.json()["restaurant"]
        assert updated["name"] == "X"
        for unchanged in ("cuisine", "rating", "owner_id", "created_at"):
            assert updated[unchanged] == restaurant[unchanged]

    def test_update_several_fields(self, client, owner, restaurant):
        response = client.put(
            f"/restaurants/{restaurant['id']}",
            json={"cuisine": "pizza", "rating": 3.5},
            headers=owner["headers"],
        )
        updated = response.json()["restaurant"]
        assert (updated["name"], updated["cuisine"], updated["rating"]) == ("Luigi's Trattoria", "pizza", 3.5)

    def test_empty_update_is_rejected(self, client, owner, restaurant):
        response = client.put(f"/restaurants/{restaurant['id']}", json={}, headers=owner["headers"])
        assert response.status_code == 400
        assert response.json() == {"error": "At least one field must be provided"}

    def test_owner_id_is_not_updatable(self, client, owner, other_owner, restaurant):
        response = client.put(
            f"/restaurants/{restaurant['id']}",
            json={"owner_id": other_owner["user"]["id"]},
            headers=owner["headers"],
        )
        assert response.status_code == 400
        assert client.get(f"/restaurants/{restaurant['id']}").json()["restaurant"] == restaurant

    def test_other_owner_is_forbidden_and_row_unchanged(self, client, other_owner, restaurant):
        response = client.put(
            f"/restaurants/{restaurant['id']}", json={"name": "Stolen"}, headers=other_owner["headers"]
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Access denied: not the owner"}
        assert client.get(f"/restaurants/{restaurant['id']}").json()["restaurant"] == restaurant

    def test_customer_is_forbidden(self, client, customer, restaurant):
        response = client.put(
            f"/restaurants/{restaurant['id']}", json={"name": "Mine"}, headers=customer["headers"]
        )
        assert response.status_code == 403

    def test_admin_may_update(self, client, admin, restaurant):
        response = client.put(
            f"/restaurants/{restaurant['id']}", json={"rating": 5}, headers=admin["headers"]
        )
        assert response.status_code == 200
        assert response.json()["restaurant"]["rating"] == 5

    def test_invalid_rating(self, client, owner, restaurant):
        response = client.put(
            f"/restaurants/{restaurant['id']}", json={"rating": 7}, headers=owner["headers"]
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid rating"}

    def test_missing_restaurant(self, client, owner):
        response = client.put("/restaurants/9999", json={"name": "X"}, headers=owner["headers"])
        assert response.status_code == 404


class TestDeleteRestaurant:

    def test_owner_deletes(self, client, owner, restaurant):
        response = client.delete(f"/restaurants/{restaurant['id']}", headers=owner["headers"])

        assert response.status_code == 200
        assert response.json() == {"message": "Restaurant deleted successfully"}
        assert client.get(f"/restaurants/{restaurant['id']}").status_code == 404

    def test_other_owner_is_forbidden(self, client, other_owner, restaurant):
        response = client.delete(f"/restaurants/{restaurant['id']}", headers=other_owner["headers"])
        assert response.status_code == 403
        assert client.get(f"/restaurants/{restaurant['id']}").status_code == 200

    def test_restaurant_with_menu_conflicts(self, client, owner, restaurant, menu):
        response = client.delete(f"/restaurants/{restaurant['id']}", headers=owner["headers"])
        assert response.status_code == 409
        assert response.json() == {"error": "Cannot delete restaurant with related records"}


class TestMenu:

    def test_menu_lists_available_items(self, client, owner, restaurant, menu):
        client.post(
            f"/restaurants/{restaurant['id']}/menu",
            json={"name": "Off Menu", "price": 1.0, "available": False},
            headers=owner["headers"],
        )

        body = client.get(f"/restaurants/{restaurant['id']}/menu").json()
        assert [i["name"] for i in body["menu_items"]] == ["Pizza Margherita", "Caesar Salad"]

    def test_menu_category_filter(self, client, restaurant, menu):
        body = client.get(f"/restaurants/{restaurant['id']}/menu", params={"category": "salad"}).json()
        assert [i["name"] for i in body["menu_items"]] == ["Caesar Salad"]

    def test_menu_of_missing_restaurant(self, client):
        assert client.get("/restaurants/9999/menu").status_code == 404

    def test_only_owner_adds_items(self, client, other_owner, restaurant):
        response = client.post(
            f"/restaurants/{restaurant['id']}/menu",
            json={"name": "Sneaky", "price": 2.0},
            headers=other_owner["headers"],
        )
        assert response.status_code == 403

    def test_price_must_be_positive(self, client, owner, restaurant):
        response = client.post(
            f"/restaurants/{restaurant['id']}/menu",
            json={"name": "Free", "price": 0},
            headers=owner["headers"],
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid price"}
