"""Health route."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from vaultboard import __version__
from vaultboard.db.connection import get_connection
from vaultboard.events import bus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    """Check connectivity to PostgreSQL and the event bus."""
    services = {}

    try:
        with get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT 1")
            cur.fetchone()
        services["database"] = "ok"
    except Exception as e:
        logger.warning("Health: database check failed: %s", e)
        services["database"] = f"error:{e}"

    if not bus.EVENT_BUS_ENABLED:
        services["event_bus"] = "disabled"
    else:
        services["event_bus"] = "ok" if bus._get_redis() is not None else "error:unreachable"

    # The bus is optional; audit falls back to inline writes.
    ok = services["database"] == "ok"
    status = "ok" if ok and services["event_bus"] != "error:unreachable" else "degraded"
    return JSONResponse(
        {"status": status, "version": __version__, "services": services},
        status_code=200 if ok else 503,
    )
