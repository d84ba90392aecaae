"""Integration tests for Cart API endpoints via TestClient."""

USER = {"X-User-Id": "user-1", "X-User-Role": "customer"}
GUEST = {"X-Session-Id": "sess-1"}


def _add(client, product_id, quantity=1, headers=USER):
    return client.post("/cart/items", json={"product_id": product_id, "quantity": quantity}, headers=headers)


class TestCartEndpoints:
    def test_empty_cart(self, client):
        body = client.get("/cart", headers=USER).json()
        assert body["items"] == []
        assert body["total"] == 0.0

    def test_caller_without_identity(self, client):
        response = client.get("/cart")
        assert response.status_code == 400
        assert response.json()["message"] == "A user or guest session is required"

    def test_add_item_snapshots_product(self, client, make_product):
        product_id = make_product(base_price=100.0, name="Lamp", sku="LAMP-1")

        response = _add(client, product_id, 2)

        assert response.status_code == 201
        item = response.json()["items"][0]
        assert (item["sku"], item["name"], item["price"], item["quantity"]) == ("LAMP-1", "Lamp", 100.0, 2)
        assert response.json()["subtotal"] == 200.0

    def test_adding_beyond_stock(self, client, make_product):
        product_id = make_product(stock=2)
        response = _add(client, product_id, 3)

        assert response.status_code == 400
        assert response.json()["details"]["available"] == 2

    def test_unknown_product(self, client):
        assert _add(client, "missing-product").status_code == 404

    def test_update_and_remove(self, client, make_product):
        product_id = make_product()
        item_id = _add(client, product_id).json()["items"][0]["id"]

        updated = client.patch(f"/cart/items/{item_id}", json={"quantity": 4}, headers=USER)
        assert updated.json()["items"][0]["quantity"] == 4

        removed = client.delete(f"/cart/items/{item_id}", headers=USER)
        assert removed.json()["items"] == []

    def test_discount_and_shipping_totals(self, client, make_product):
        product_id = make_product(base_price=100.0)
        _add(client, product_id, 2)

        client.post("/cart/discount", json={"code": "SAVE10", "amount": 10}, headers=USER)
        body = client.post("/cart/shipping", json={"amount": 5}, headers=USER).json()

        assert body["discount_code"] == "SAVE10"
        assert body["total"] == 195.0

        body = client.delete("/cart/discount", headers=USER).json()
        assert body["discount"] == 0.0
        assert body["total"] == 205.0

    def test_clear(self, client, make_product):
        _add(client, make_product())
        assert client.delete("/cart", headers=USER).json()["items"] == []


class TestGuestCarts:
    def test_guest_cart_merges_on_login(self, client, make_product):
        product_id = make_product()
        _add(client, product_id, 2, headers=GUEST)

        merged = client.post("/cart/merge", json={"session_id": "sess-1"}, headers=USER)

        assert merged.status_code == 200
        assert merged.json()["user_id"] == "user-1"
        assert merged.json()["items"][0]["quantity"] == 2

    def test_merge_needs_a_user(self, client):
        response = client.post("/cart/merge", json={"session_id": "sess-1"}, headers=GUEST)
        assert response.status_code == 403

    def test_merge_without_guest_cart(self, client):
        response = client.post("/cart/merge", json={"session_id": "sess-unknown"}, headers=USER)
        assert response.status_code == 400
