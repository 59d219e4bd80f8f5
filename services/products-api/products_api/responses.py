from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

from products_api.exceptions import AuthError, ProductsApiError
from products_api.http import ApiResponse
from products_api.schemas import ProductRead

PRODUCT_ADDED = "Product added successfully"
PRODUCT_UPDATED = "Product updated successfully"
PRODUCT_DELETED = "Product deleted successfully"


def product_body(row: Mapping[str, Any]) -> Dict[str, Any]:
    return ProductRead.model_validate(dict(row)).model_dump(mode="json", by_alias=True)


def products_response(rows: Iterable[Mapping[str, Any]]) -> ApiResponse:
    return ApiResponse.json(200, [product_body(r) for r in rows])


def product_response(row: Mapping[str, Any]) -> ApiResponse:
    return ApiResponse.json(200, product_body(row))


def message_response(status_code: int, message: str) -> ApiResponse:
    return ApiResponse.json(status_code, {"message": message})


def error_response(status_code: int, message: str) -> ApiResponse:
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return ApiResponse.json(status_code, {"error": message}, headers=headers)


def map_error(exc: Exception) -> ApiResponse:
    """
    One status code per failure kind. Anything that is not a ProductsApiError
    is an internal error; its text never reaches the caller.
    """
    if isinstance(exc, AuthError):
        return error_response(401, exc.message)
    if isinstance(exc, ProductsApiError):
        return error_response(exc.status_code, exc.message)
    return error_response(500, "Internal server error")
