import os
import time
from typing import Any, Callable, Dict, Iterator

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwk, jwt

# Defaults so Settings() is stable for the whole suite.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("COGNITO_REGION", "eu-west-1")
os.environ.setdefault("COGNITO_USER_POOL_ID", "eu-west-1_TestPool")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from products_api.core.config import Settings, get_settings  # noqa: E402
from products_api.core.db import DatabaseConfig, DatabaseGateway  # noqa: E402
from products_api.core.deps import get_handlers  # noqa: E402
from products_api.core.security import StaticKeyVerifier  # noqa: E402
from products_api.handlers import ProductHandlers  # noqa: E402
from products_api.repositories import ProductRepository  # noqa: E402

KID = "test-key-1"

WIDGET = {
    "productId": "P1",
    "name": "Widget",
    "description": "d",
    "price": 9.99,
    "quantity": 5,
    "category": "tools",
    "imageUrl": "http://x/img.png",
}


def _private_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def _public_jwk(private_pem: str, kid: str) -> Dict[str, Any]:
    public = jwk.construct(private_pem, algorithm="RS256").public_key().to_dict()
    public.update({"kid": kid, "use": "sig", "alg": "RS256"})
    return public


@pytest.fixture(scope="session")
def settings() -> Settings:
    return get_settings()


@pytest.fixture(scope="session")
def signing_key() -> str:
    return _private_pem()


@pytest.fixture(scope="session")
def other_signing_key() -> str:
    return _private_pem()


@pytest.fixture(scope="session")
def jwks(signing_key: str) -> Dict[str, Any]:
    return {"keys": [_public_jwk(signing_key, KID)]}


@pytest.fixture(scope="session")
def make_token(settings: Settings, signing_key: str) -> Callable[..., str]:
    def _make(key: str = None, kid: str = KID, **overrides: Any) -> str:
        now = int(time.time())
        claims = {
            "sub": "user-123",
            "iss": settings.oidc_issuer_expected,
            "client_id": "products-client",
            "token_use": "access",
            "scope": "products/read products/write",
            "iat": now,
            "exp": now + 300,
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jwt.encode(claims, key or signing_key, algorithm="RS256", headers={"kid": kid})

    return _make


@pytest.fixture(scope="session")
def verifier(settings: Settings, jwks: Dict[str, Any]) -> StaticKeyVerifier:
    return StaticKeyVerifier(jwks, issuer=settings.oidc_issuer_expected, leeway_seconds=10)


class SpyGateway(DatabaseGateway):
    """Real gateway that also records every statement it runs."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.calls = []

    def execute(self, statement, parameters=None):
        self.calls.append((statement, parameters))
        return super().execute(statement, parameters)


@pytest.fixture()
def gateway(tmp_path) -> Iterator[SpyGateway]:
    gw = SpyGateway(DatabaseConfig(url=f"sqlite:///{tmp_path / 'products.db'}", pool_size=2))
    gw.create_schema()
    gw.calls.clear()
    yield gw
    gw.dispose()


@pytest.fixture()
def handlers(gateway: SpyGateway, verifier: StaticKeyVerifier, settings: Settings) -> ProductHandlers:
    return ProductHandlers(verifier, ProductRepository(gateway), settings)


@pytest.fixture()
def client(handlers: ProductHandlers) -> Iterator[TestClient]:
    from products_api.main import app

    app.dependency_overrides[get_handlers] = lambda: handlers
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(make_token: Callable[..., str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}
