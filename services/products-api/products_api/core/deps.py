from functools import lru_cache

from products_api.core.config import get_settings
from products_api.core.db import DatabaseConfig, DatabaseGateway
from products_api.core.security import JWKSVerifier
from products_api.handlers import ProductHandlers
from products_api.repositories import ProductRepository


@lru_cache(maxsize=1)
def get_gateway() -> DatabaseGateway:
    return DatabaseGateway(DatabaseConfig.from_settings(get_settings()))


@lru_cache(maxsize=1)
def get_handlers() -> ProductHandlers:
    """Process-wide handlers: one key-set cache and one connection pool."""
    settings = get_settings()
    repository = ProductRepository(get_gateway(), mode=settings.db_statement_mode)
    return ProductHandlers(JWKSVerifier.from_settings(settings), repository, settings)
