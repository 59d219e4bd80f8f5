from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuration for products-api.

    Loaded once per process. The identity provider is a Cognito user pool: the
    issuer and the JWKS URL are both derived from the region and the pool id.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # --- Service ---
    app_name: str = Field(default="products-api", validation_alias="APP_NAME")
    app_version: str = Field(default="0.1.0", validation_alias="APP_VERSION")
    environment: str = Field(default="local", validation_alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    cors_allowed_origins: str = Field(default="http://localhost:5173", validation_alias="CORS_ALLOWED_ORIGINS")

    def cors_origins_list(self) -> List[str]:
        return [x.strip() for x in self.cors_allowed_origins.split(",") if x.strip()]

    # --- Routes ---
    public_list_products: bool = Field(default=True, validation_alias="PUBLIC_LIST_PRODUCTS")
    delete_missing_is_not_found: bool = Field(default=False, validation_alias="DELETE_MISSING_IS_NOT_FOUND")

    # --- Identity provider (Cognito) ---
    cognito_region: str = Field(default="us-east-1", validation_alias="COGNITO_REGION")
    cognito_user_pool_id: str = Field(default="", validation_alias="COGNITO_USER_POOL_ID")
    oidc_issuer_host_template: str = Field(
        default="cognito-idp.{region}.amazonaws.com",
        validation_alias="OIDC_ISSUER_HOST_TEMPLATE",
    )

    # Clock skew tolerance (seconds)
    oidc_leeway_seconds: int = Field(default=10, validation_alias="OIDC_LEEWAY_SECONDS")

    # Comma-separated, e.g. "RS256,RS384"
    oidc_algorithms: str = Field(default="RS256", validation_alias="OIDC_ALGORITHMS")
    oidc_verify_issuer: bool = Field(default=True, validation_alias="OIDC_VERIFY_ISSUER")

    oidc_jwks_cache_seconds: int = Field(default=300, validation_alias="OIDC_JWKS_CACHE_SECONDS")
    oidc_http_timeout_seconds: float = Field(default=5.0, validation_alias="OIDC_HTTP_TIMEOUT_SECONDS")

    @property
    def oidc_issuer_expected(self) -> str:
        host = self.oidc_issuer_host_template.format(region=self.cognito_region)
        return f"https://{host}/{self.cognito_user_pool_id}"

    @property
    def oidc_jwks_url(self) -> str:
        return f"{self.oidc_issuer_expected}/.well-known/jwks.json"

    @property
    def oidc_algorithms_list(self) -> list[str]:
        return [a.strip() for a in self.oidc_algorithms.split(",") if a.strip()]

    # -------------------------
    # Database
    # -------------------------
    # Option A: full URL (used as-is when set).
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # Option B: pieces
    db_dialect: str = Field(default="postgresql+psycopg", validation_alias="DB_DIALECT")
    db_host: str = Field(default="localhost", validation_alias="DB_HOST")
    db_port: int = Field(default=5432, validation_alias="DB_PORT")
    db_name: str = Field(default="products_db", validation_alias="DB_NAME")
    db_user: str = Field(default="products_app", validation_alias="DB_USERNAME")
    db_password: Optional[str] = Field(default=None, validation_alias="DB_PASSWORD")
    db_encrypt: bool = Field(default=True, validation_alias="DB_ENCRYPT")

    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_pool_timeout_seconds: float = Field(default=10.0, validation_alias="DB_POOL_TIMEOUT_SECONDS")
    db_connect_timeout_seconds: int = Field(default=10, validation_alias="DB_CONNECT_TIMEOUT_SECONDS")

    # "sql" runs parameterized SQL, "procedure" calls the stored procedures.
    db_statement_mode: str = Field(default="sql", validation_alias="DB_STATEMENT_MODE")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
