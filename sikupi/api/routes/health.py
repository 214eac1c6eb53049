"""Liveness and readiness probes for the load balancer."""

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from sikupi.core.logging import SERVICE_NAME

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness. Flips to 503 once SIGTERM starts draining connections."""
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(status_code=503, content={"status": "shutting_down", "service": SERVICE_NAME})
    return {"status": "healthy", "service": SERVICE_NAME}


async def _database_reachable(request: Request) -> bool:
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        logger.warning("readiness_database_not_initialized")
        return False
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("readiness_database_check_failed", error=str(e), error_type=type(e).__name__)
        return False
    return True


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness: the orders database answers and the idempotency ledger is up."""
    ledger = getattr(request.app.state, "ledger", None)
    checks = {
        "database": await _database_reachable(request),
        "idempotency_ledger": ledger is not None,
    }
    ready = all(checks.values())

    content = {"status": "ready" if ready else "degraded", "checks": checks}
    if ledger is not None:
        content["ledger_entries"] = len(ledger)
    return JSONResponse(status_code=200 if ready else 503, content=content)
