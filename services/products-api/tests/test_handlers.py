import json

import pytest

from conftest import WIDGET
from products_api.handlers import ProductHandlers, Route
from products_api.http import ApiRequest


def _request(method, path, token=None, body=None, **path_params):
    headers = {"authorization": f"Bearer {token}"} if token else {}
    return ApiRequest(
        method=method,
        path=path,
        headers=headers,
        path_params=path_params,
        body=json.dumps(body) if body is not None else None,
    )


def test_route_match_extracts_path_params():
    route = Route("GET", "/products/{productId}", "get_product", auth_required=True)
    assert route.match("/products/P1") == {"productId": "P1"}
    assert route.match("/products/P1/") == {"productId": "P1"}
    assert route.match("/products") is None
    assert route.match("/products/P1/extra") is None


def test_dispatch_unknown_path_returns_404(handlers):
    r = handlers.dispatch(_request("GET", "/orders"))
    assert r.status_code == 404


def test_dispatch_wrong_method_returns_405(handlers):
    r = handlers.dispatch(_request("PATCH", "/products/P1"))
    assert r.status_code == 405
    assert json.loads(r.body) == {"error": "Method not allowed"}


def test_dispatch_fills_path_params(handlers, make_token):
    token = make_token()
    assert handlers.dispatch(_request("POST", "/products", token, WIDGET)).status_code == 201

    r = handlers.dispatch(_request("GET", "/products/P1", token))
    assert r.status_code == 200
    assert json.loads(r.body)["name"] == "Widget"


def test_lowercase_bearer_scheme_and_header_name(handlers, make_token):
    request = ApiRequest(
        method="GET",
        path="/products/P1",
        headers={"AUTHORIZATION": f"bearer {make_token()}"},
    )
    assert handlers.dispatch(request).status_code == 404


def test_list_requires_token_when_not_public(gateway, verifier, settings):
    from products_api.repositories import ProductRepository

    private = ProductHandlers(
        verifier,
        ProductRepository(gateway),
        settings.model_copy(update={"public_list_products": False}),
    )
    r = private.dispatch(_request("GET", "/products"))
    assert r.status_code == 401
    assert gateway.calls == []


def test_delete_missing_can_report_404(gateway, verifier, settings, make_token):
    from products_api.repositories import ProductRepository

    strict = ProductHandlers(
        verifier,
        ProductRepository(gateway),
        settings.model_copy(update={"delete_missing_is_not_found": True}),
    )
    r = strict.dispatch(_request("DELETE", "/products/ghost", make_token()))
    assert r.status_code == 404


def test_database_failure_returns_generic_500(handlers, gateway, make_token):
    # Drop the table behind the gateway's back.
    from sqlalchemy import text

    with gateway.engine.begin() as conn:
        conn.execute(text("DROP TABLE products"))

    r = handlers.dispatch(_request("GET", "/products/P1", make_token()))
    assert r.status_code == 500
    assert json.loads(r.body) == {"error": "Database error"}


def test_unexpected_error_does_not_leak_details(handlers, monkeypatch):
    def boom():
        raise RuntimeError("secret connection string")

    monkeypatch.setattr(handlers.repository, "list_products", boom)
    r = handlers.dispatch(_request("GET", "/products"))
    assert r.status_code == 500
    assert "secret" not in r.body


@pytest.mark.parametrize("token", ["garbage", "a.b.c", ""])
def test_malformed_tokens_are_unauthorized(handlers, token):
    request = ApiRequest(method="POST", path="/products", headers={"Authorization": f"Bearer {token}"})
    r = handlers.dispatch(request)
    assert r.status_code == 401
