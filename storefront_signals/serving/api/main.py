"""
FastAPI Application Factory

Creates the API app: middleware, routers, error handlers and the
Prometheus scrape endpoint. The engine itself is attached to app.state
by the lifespan in storefront_signals.main (or directly by tests).
"""

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from storefront_signals.config import Settings, get_settings
from storefront_signals.exceptions import SignalsError, StoreUnavailableError
from storefront_signals.serving.api.middleware import RequestLoggingMiddleware
from storefront_signals.serving.api.routes import (
    analytics_router,
    banners_router,
    health_router,
    notifications_router,
    recommendations_router,
    tracking_router,
    trending_router,
)

logger = structlog.get_logger(__name__)


def _error_body(error: SignalsError) -> dict:
    return {"success": False, "error": error.message, "details": error.details}


async def signals_error_handler(request: Request, exc: SignalsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            error=exc.message,
            exc_info=getattr(exc, "error", None) or exc,
        )
    else:
        logger.info("Request rejected", path=request.url.path, error=exc.message, status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    error = StoreUnavailableError("database", exc)
    logger.error("Database error", path=request.url.path, error_type=type(exc).__name__, exc_info=exc)
    return JSONResponse(status_code=error.status_code, content=_error_body(error))


def create_api_app(settings: Optional[Settings] = None, lifespan=None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Storefront Signals API",
        description="Behavioral tracking, trending, recommendations and banner content",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(SignalsError, signals_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(tracking_router, prefix="/api/v1/track", tags=["Tracking"])
    app.include_router(trending_router, prefix="/api/v1/trending", tags=["Trending"])
    app.include_router(recommendations_router, prefix="/api/v1/recommendations", tags=["Recommendations"])
    app.include_router(banners_router, prefix="/api/v1/banners", tags=["Banners"])
    app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Analytics"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["Notifications"])

    app.mount("/metrics", make_asgi_app())

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
        }

    return app
