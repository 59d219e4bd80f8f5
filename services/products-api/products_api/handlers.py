from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from products_api.core.config import Settings
from products_api.core.logging import get_logger, request_logger
from products_api.core.security import AuthClaims, CredentialVerifier
from products_api.exceptions import (
    DatabaseError,
    MethodNotAllowedError,
    MissingTokenError,
    NotFoundError,
    ProductsApiError,
)
from products_api.http import ApiRequest, ApiResponse
from products_api.repositories import ProductRepository
from products_api.responses import (
    PRODUCT_ADDED,
    PRODUCT_DELETED,
    PRODUCT_UPDATED,
    map_error,
    message_response,
    product_response,
    products_response,
)
from products_api.validation import parse_body, validate_create, validate_update

logger = get_logger(__name__)


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    operation: str
    auth_required: bool

    def match(self, path: str) -> Optional[Dict[str, str]]:
        pattern = "^" + re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", self.path) + "/?$"
        m = re.match(pattern, path)
        return m.groupdict() if m else None


def build_routes(settings: Settings) -> List[Route]:
    """The auth requirement of every route is explicit here."""
    return [
        Route("GET", "/products", "list_products", auth_required=not settings.public_list_products),
        Route("POST", "/products", "create_product", auth_required=True),
        Route("GET", "/products/{productId}", "get_product", auth_required=True),
        Route("PUT", "/products/{productId}", "update_product", auth_required=True),
        Route("DELETE", "/products/{productId}", "delete_product", auth_required=True),
    ]


class ProductHandlers:
    """
    The five product operations.

    Every step raises a ProductsApiError on failure; `invoke` turns the first
    failure into its response, so later steps never run.
    """

    def __init__(
        self,
        verifier: CredentialVerifier,
        repository: ProductRepository,
        settings: Settings,
    ) -> None:
        self.verifier = verifier
        self.repository = repository
        self.settings = settings
        self.routes = build_routes(settings)

    # --- steps ---

    def authenticate(self, request: ApiRequest) -> AuthClaims:
        token = request.authorization
        if not token:
            raise MissingTokenError()
        return self.verifier.verify(token)

    @staticmethod
    def _product_id(request: ApiRequest) -> str:
        product_id = (request.path_params.get("productId") or "").strip()
        if not product_id:
            raise NotFoundError()
        return product_id

    # --- operations ---

    def list_products(self, request: ApiRequest) -> ApiResponse:
        return products_response(self.repository.list_products())

    def create_product(self, request: ApiRequest) -> ApiResponse:
        payload = validate_create(parse_body(request.body))
        self.repository.create_product(payload)
        return message_response(201, PRODUCT_ADDED)

    def get_product(self, request: ApiRequest) -> ApiResponse:
        row = self.repository.get_product(self._product_id(request))
        if row is None:
            raise NotFoundError()
        return product_response(row)

    def update_product(self, request: ApiRequest) -> ApiResponse:
        product_id = self._product_id(request)
        payload = validate_update(parse_body(request.body))
        if self.repository.update_product(product_id, payload) == 0:
            raise NotFoundError()
        return message_response(200, PRODUCT_UPDATED)

    def delete_product(self, request: ApiRequest) -> ApiResponse:
        deleted = self.repository.delete_product(self._product_id(request))
        if deleted == 0 and self.settings.delete_missing_is_not_found:
            raise NotFoundError()
        return message_response(200, PRODUCT_DELETED)

    # --- dispatch ---

    def resolve(self, method: str, path: str) -> Tuple[Route, Dict[str, str]]:
        path_matched = False
        for route in self.routes:
            params = route.match(path)
            if params is None:
                continue
            path_matched = True
            if route.method == method.upper():
                return route, params
        if path_matched:
            raise MethodNotAllowedError()
        raise NotFoundError("Not found")

    def invoke(self, route: Route, request: ApiRequest) -> ApiResponse:
        request_id = request.request_id or str(uuid4())
        log = request_logger(logger, request_id)
        operation: Callable[[ApiRequest], ApiResponse] = getattr(self, route.operation)

        started = time.perf_counter()
        log.info("request start %s %s", request.method, request.path)
        try:
            if route.auth_required:
                claims = self.authenticate(request)
                log.info("authenticated sub=%s", claims.subject)
            response = operation(request)
        except DatabaseError as e:
            log.error("%s failed: %s (%s)", route.operation, type(e).__name__, e.__cause__)
            response = map_error(e)
        except ProductsApiError as e:
            log.info("%s rejected: %s %s", route.operation, e.status_code, e.message)
            response = map_error(e)
        except Exception as e:  # noqa: BLE001
            log.exception("Unhandled error in %s", route.operation)
            response = map_error(e)

        elapsed_ms = (time.perf_counter() - started) * 1000
        log.info("request end status=%s elapsed_ms=%.1f", response.status_code, elapsed_ms)
        return response

    def dispatch(self, request: ApiRequest) -> ApiResponse:
        try:
            route, params = self.resolve(request.method, request.path)
        except ProductsApiError as e:
            return map_error(e)

        if params and not request.path_params:
            request = ApiRequest(
                method=request.method,
                path=request.path,
                headers=request.headers,
                path_params=params,
                body=request.body,
                request_id=request.request_id,
            )
        return self.invoke(route, request)
