"""
Storefront Signals API

Main entry point. The lifespan wires logging, the database, Redis (when
reachable) and the background worker pool, then builds the engine.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from storefront_signals.config import get_settings
from storefront_signals.config.logging import configure_logging
from storefront_signals.database.connection import (
    close_database,
    get_session_factory,
    init_database,
)
from storefront_signals.serving.api import create_api_app
from storefront_signals.serving.cache import close_redis, init_redis
from storefront_signals.serving.container import build_engine
from storefront_signals.tasks import BackgroundDispatcher

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    configure_logging(settings.monitoring.log_level)

    logger.info("Starting Storefront Signals API", environment=settings.app_env)

    await init_database(create_tables=settings.is_development)

    redis = None
    try:
        redis = await init_redis()
    except Exception as e:
        logger.warning("Redis unavailable, using in-process status store and no cache", error=str(e))

    dispatcher = BackgroundDispatcher(
        pool_size=settings.workers.pool_size,
        queue_size=settings.workers.queue_size,
    )
    await dispatcher.start()

    app.state.engine = build_engine(
        settings=settings,
        session_factory=get_session_factory(),
        dispatcher=dispatcher,
        redis=redis,
    )

    yield

    logger.info("Shutting down...")
    await dispatcher.stop(timeout=settings.workers.drain_timeout_seconds)
    await close_redis()
    await close_database()


app = create_api_app(lifespan=lifespan)


def run() -> None:
    """Console entry point"""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "storefront_signals.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.monitoring.log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    run()
