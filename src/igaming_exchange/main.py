"""FastAPI application entry point for the iGaming Exchange.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, create tables (dev mode).
    2. Running: Serve the REST API and the server-callable functions.
    3. Shutdown: Close database and Redis connections gracefully.

Run with:
    uvicorn igaming_exchange.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from igaming_exchange.config import get_settings
from igaming_exchange.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
        payments_simulated=settings.payment_simulate,
        esign_simulated=settings.esign_simulate,
    )

    # 2. Initialize database
    from igaming_exchange.infrastructure.database.engine import close_db, init_db

    await init_db()

    # 3. Initialize Redis (optional)
    from igaming_exchange.infrastructure.redis_client import close_redis, init_redis

    await init_redis()

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="iGaming Exchange",
        description=(
            "Marketplace for iGaming business assets: listings, gated access "
            "with NDA, escrowed payments and e-signed purchase agreements."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from igaming_exchange.api.middleware import setup_middleware

    setup_middleware(app)

    # --- Routes ---
    from igaming_exchange.api.routes.access_requests import router as access_router
    from igaming_exchange.api.routes.escrows import agreements_router
    from igaming_exchange.api.routes.escrows import router as escrow_router
    from igaming_exchange.api.routes.functions import router as functions_router
    from igaming_exchange.api.routes.health import router as health_router
    from igaming_exchange.api.routes.kyc import router as kyc_router
    from igaming_exchange.api.routes.listings import router as listings_router
    from igaming_exchange.api.routes.me import router as me_router
    from igaming_exchange.api.routes.messages import router as messages_router
    from igaming_exchange.api.routes.notifications import router as notifications_router
    from igaming_exchange.api.routes.webhooks import router as webhooks_router

    app.include_router(health_router)
    app.include_router(functions_router)
    app.include_router(listings_router)
    app.include_router(access_router)
    app.include_router(escrow_router)
    app.include_router(agreements_router)
    app.include_router(notifications_router)
    app.include_router(kyc_router)
    app.include_router(messages_router)
    app.include_router(me_router)
    app.include_router(webhooks_router)

    return app


# The app instance used by Uvicorn
app = create_app()
