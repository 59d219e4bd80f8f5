from __future__ import annotations

from typing import Optional


class ProductsApiError(Exception):
    """
    Base class for every failure a handler can report.

    `message` is what the caller sees; the chained exception (if any) is only
    for the logs.
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthError(ProductsApiError):
    status_code = 401
    default_message = "Unauthorized"


class MissingTokenError(AuthError):
    default_message = "Authorization token missing"


class PayloadValidationError(ProductsApiError):
    status_code = 400
    default_message = "Missing required fields"


class NoFieldsError(PayloadValidationError):
    default_message = "No fields to update"


class NotFoundError(ProductsApiError):
    status_code = 404
    default_message = "Product not found"


class MethodNotAllowedError(ProductsApiError):
    status_code = 405
    default_message = "Method not allowed"


class DatabaseError(ProductsApiError):
    status_code = 500
    default_message = "Database error"


class ConnectionFailure(DatabaseError):
    pass


class QueryFailure(DatabaseError):
    pass


class DuplicateProductError(QueryFailure):
    status_code = 409
    default_message = "Product already exists"
