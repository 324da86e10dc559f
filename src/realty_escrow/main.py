"""FastAPI application entry point for the Realty Escrow service.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, create tables (dev mode),
       then start the background sweep scheduler.
    2. Running: Serve the contract and payment REST API while the scheduler
       activates contracts, auto-releases escrow and fails stale payments.
    3. Shutdown: Stop the scheduler, close database and Redis connections.

Run with:
    uv run uvicorn realty_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from realty_escrow.config import get_settings
from realty_escrow.logging_config import get_logger, setup_logging

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
        simulate_payments=settings.simulate_payments,
    )

    # 2. Initialize database
    from realty_escrow.infrastructure.database.engine import (
        close_db,
        get_session_factory,
        init_db,
    )

    await init_db()

    # 3. Initialize Redis (optional: idempotent replays only)
    from realty_escrow.infrastructure.redis_client import close_redis, init_redis

    try:
        await init_redis()
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    # 4. Start the sweep scheduler
    app.state.scheduler = None
    if settings.scheduler_enabled:
        from realty_escrow.api.deps import get_notifier, get_provider_factory
        from realty_escrow.orchestration.scheduler import build_sweep_scheduler

        scheduler = build_sweep_scheduler(
            get_session_factory(),
            settings,
            notifier=get_notifier(),
            providers=get_provider_factory(),
        )
        scheduler.launch()
        app.state.scheduler = scheduler

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    # Shutdown
    logger.info("app.shutting_down")
    if app.state.scheduler is not None:
        await app.state.scheduler.stop()
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Realty Escrow",
        description=(
            "Rental and sale-promise contracts with OTP signatures, a 48-hour "
            "retraction window, itemized invoices and escrowed mobile-money payments."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from realty_escrow.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from realty_escrow.api.routes.contracts import router as contracts_router
    from realty_escrow.api.routes.health import router as health_router
    from realty_escrow.api.routes.payments import router as payments_router

    app.include_router(health_router)
    app.include_router(contracts_router)
    app.include_router(payments_router)

    return app


# The app instance used by Uvicorn
app = create_app()
