from datetime import datetime, timezone

import pytest

from conftest import WIDGET


def _create(client, auth_headers, **overrides):
    payload = {**WIDGET, **overrides}
    return client.post("/products", json=payload, headers=auth_headers)


def test_list_products_is_public(client, auth_headers):
    r = client.get("/products")
    assert r.status_code == 200, r.text
    assert r.json() == []

    r = client.get("/products", headers=auth_headers)
    assert r.status_code == 200, r.text


def test_list_products_returns_created_rows(client, auth_headers):
    _create(client, auth_headers)
    _create(client, auth_headers, productId="P2", name="Gadget")

    r = client.get("/products")
    assert r.status_code == 200
    assert [p["productId"] for p in r.json()] == ["P1", "P2"]


@pytest.mark.parametrize(
    "method, path",
    [
        ("POST", "/products"),
        ("GET", "/products/P1"),
        ("PUT", "/products/P1"),
        ("DELETE", "/products/P1"),
    ],
)
def test_missing_token_returns_401_without_db_call(client, gateway, method, path):
    r = client.request(method, path, json={"name": "x"})
    assert r.status_code == 401, r.text
    assert r.json() == {"error": "Authorization token missing"}
    assert r.headers["WWW-Authenticate"] == "Bearer"
    assert gateway.calls == []


@pytest.mark.parametrize("method, path", [("POST", "/products"), ("GET", "/products/P1"), ("DELETE", "/products/P1")])
def test_expired_token_returns_401_without_side_effects(client, gateway, make_token, method, path):
    token = make_token(exp=int(datetime.now(timezone.utc).timestamp()) - 3600)
    r = client.request(method, path, json=WIDGET, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401, r.text
    assert r.json() == {"error": "Unauthorized"}
    assert gateway.calls == []


def test_token_signed_with_unknown_key_returns_401(client, gateway, make_token, other_signing_key):
    token = make_token(key=other_signing_key)
    r = client.post("/products", json=WIDGET, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert gateway.calls == []


def test_create_then_read_round_trip(client, auth_headers):
    started = datetime.now(timezone.utc)

    r = _create(client, auth_headers)
    assert r.status_code == 201, r.text
    assert r.json() == {"message": "Product added successfully"}

    r = client.get("/products/P1", headers=auth_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    for key, value in WIDGET.items():
        assert body[key] == value
    assert datetime.fromisoformat(body["createdAt"]) >= started


def test_create_missing_price_returns_400(client, auth_headers):
    payload = {k: v for k, v in WIDGET.items() if k != "price"}
    r = client.post("/products", json=payload, headers=auth_headers)
    assert r.status_code == 400, r.text
    assert r.json() == {"error": "Missing required field: price"}


def test_create_accepts_zero_price_and_quantity(client, auth_headers):
    r = _create(client, auth_headers, price=0, quantity=0)
    assert r.status_code == 201, r.text

    body = client.get("/products/P1", headers=auth_headers).json()
    assert body["price"] == 0
    assert body["quantity"] == 0


def test_create_invalid_json_returns_400(client, auth_headers):
    r = client.post(
        "/products",
        content=b"{not json",
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid JSON body"}


def test_create_duplicate_returns_409(client, auth_headers):
    assert _create(client, auth_headers).status_code == 201
    r = _create(client, auth_headers)
    assert r.status_code == 409, r.text
    assert r.json() == {"error": "Product already exists"}


def test_get_unknown_product_returns_404(client, auth_headers):
    r = client.get("/products/nope", headers=auth_headers)
    assert r.status_code == 404
    assert r.json() == {"error": "Product not found"}


def test_partial_update_keeps_other_fields(client, auth_headers):
    _create(client, auth_headers)
    before = client.get("/products/P1", headers=auth_headers).json()

    r = client.put("/products/P1", json={"price": 19.99}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"message": "Product updated successfully"}

    after = client.get("/products/P1", headers=auth_headers).json()
    assert after["price"] == 19.99
    assert {k: v for k, v in after.items() if k != "price"} == {k: v for k, v in before.items() if k != "price"}


def test_update_quantity_to_zero(client, auth_headers):
    _create(client, auth_headers)
    r = client.put("/products/P1", json={"stockQuantity": 0}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert client.get("/products/P1", headers=auth_headers).json()["quantity"] == 0


def test_update_without_fields_returns_400(client, auth_headers, gateway):
    _create(client, auth_headers)
    gateway.calls.clear()

    r = client.put("/products/P1", json={}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json() == {"error": "No fields to update"}
    assert gateway.calls == []


def test_update_unknown_product_returns_404(client, auth_headers):
    r = client.put("/products/ghost", json={"name": "x"}, headers=auth_headers)
    assert r.status_code == 404


def test_delete_then_read_returns_404(client, auth_headers):
    _create(client, auth_headers)

    r = client.delete("/products/P1", headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"message": "Product deleted successfully"}

    assert client.get("/products/P1", headers=auth_headers).status_code == 404


def test_delete_is_idempotent(client, auth_headers):
    r = client.delete("/products/ghost", headers=auth_headers)
    assert r.status_code == 200


def test_request_id_is_echoed(client):
    r = client.get("/products", headers={"X-Request-Id": "req-42"})
    assert r.headers["X-Request-Id"] == "req-42"


def test_numeric_product_id_is_stored_as_text(client, auth_headers):
    r = _create(client, auth_headers, productId=123)
    assert r.status_code == 201, r.text

    r = client.get("/products/123", headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["productId"] == "123"


@pytest.mark.parametrize("price", [9.999, 1e12])
def test_create_price_outside_column_precision_returns_400(client, auth_headers, gateway, price):
    r = _create(client, auth_headers, price=price)
    assert r.status_code == 400, r.text
    assert r.json() == {"error": "Invalid value for field: price"}
    assert gateway.calls == []


def test_update_price_with_too_many_places_returns_400(client, auth_headers):
    _create(client, auth_headers)
    r = client.put("/products/P1", json={"price": 1.005}, headers=auth_headers)
    assert r.status_code == 400, r.text
    assert r.json() == {"error": "Invalid value for field: price"}
    assert client.get("/products/P1", headers=auth_headers).json()["price"] == 9.99
