from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from products_api.api.routes import router
from products_api.core.config import get_settings
from products_api.core.deps import get_gateway
from products_api.core.logging import configure_logging, get_logger
from products_api.middlewares.request_id import RequestIdMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    # Only dispose a pool that was actually created.
    if get_gateway.cache_info().currsize:
        get_gateway().dispose()


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=_lifespan)

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
    )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None)
        logger.exception("Unhandled exception [%s]", request_id)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "service": settings.app_name,
            "env": settings.environment,
            "version": settings.app_version,
        }

    app.include_router(router)

    logger.info(
        "%s started env=%s issuer=%s public_list=%s",
        settings.app_name,
        settings.environment,
        settings.oidc_issuer_expected,
        settings.public_list_products,
    )
    return app


app = create_app()
