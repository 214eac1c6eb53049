"""Sikupi Webhooks: FastAPI application entry point."""

import asyncio
import signal
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta

# configure_structlog MUST be called before all other app imports
# (structlog caches the processor chain on first use).
from sikupi.core.logging import configure_structlog
from sikupi.core.config import get_settings as _get_settings_early

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sikupi.api.routes import api_router
from sikupi.core.config import Settings, get_settings
from sikupi.db import close_db, init_db
from sikupi.middleware.correlation import (
    setup_correlation_middleware,
    get_correlation_id,
)
from sikupi.orders.store_sql import SqlOrderStore
from sikupi.webhooks.ledger import IdempotencyLedger
from sikupi.webhooks.sweeper import LedgerSweeper

logger = structlog.get_logger(__name__)


def build_ledger(settings: Settings) -> IdempotencyLedger:
    """Create the process-wide idempotency ledger from settings."""
    return IdempotencyLedger(retention=timedelta(seconds=settings.idempotency_retention_seconds))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # SIGTERM flips this so the health check returns 503 while draining
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    app.state.db_engine, app.state.session_factory = await init_db()
    logger.info("db_initialized")

    app.state.ledger = build_ledger(settings)
    app.state.order_store = SqlOrderStore(app.state.session_factory)
    logger.info("idempotency_ledger_initialized", retention_seconds=settings.idempotency_retention_seconds)

    sweeper = LedgerSweeper(app.state.ledger, settings.idempotency_sweep_interval_seconds)
    sweeper_task = asyncio.create_task(sweeper.run())

    yield

    logger.info("shutdown_begin")
    sweeper_task.cancel()
    try:
        await sweeper_task
    except asyncio.CancelledError:
        pass
    await close_db(app.state.db_engine)
    logger.info("shutdown_complete")


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Global exception handler for HTTPException with debug_id tracking.

    Logs errors server-side with full context, returns sanitized response to the caller.
    """
    debug_id = str(uuid.uuid4())

    logger.error(
        "http_exception",
        status_code=exc.status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        detail=exc.detail,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "debug_id": debug_id},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for unhandled errors with debug_id tracking.

    Logs full exception with traceback, returns generic 500 to the caller.
    """
    debug_id = str(uuid.uuid4())

    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def create_app(app_lifespan=lifespan) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Sikupi marketplace payment and shipping webhook reconciliation",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=app_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (runs first on incoming requests)
    setup_correlation_middleware(app)

    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)

    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sikupi.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
