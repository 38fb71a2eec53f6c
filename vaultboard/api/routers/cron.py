"""Scheduled job endpoints, called by an external scheduler with a bearer secret."""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from vaultboard.api.deps import get_service
from vaultboard.config import get_config
from vaultboard.entries.service import EntryService

router = APIRouter(prefix="/api/cron", tags=["cron"])


def _authorized(request: Request) -> bool:
    secret = get_config().cron_secret
    if not secret:
        return False
    header = request.headers.get("authorization", "")
    return hmac.compare_digest(header, f"Bearer {secret}")


@router.get("/check-expiring")
async def api_check_expiring(request: Request, service: EntryService = Depends(get_service)):
    """Daily expiration sweep, 14 days ahead."""
    if not _authorized(request):
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    result = service.sweep()
    return {
        "success": True,
        **result,
        "message": "Expiration check completed. Check logs for details.",
    }
