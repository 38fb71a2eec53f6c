"""API dependency injection — shared FastAPI dependencies.

Authentication happens upstream (reverse proxy / identity provider); requests
arrive with the authenticated principal id in ``X-Principal-Id``.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from vaultboard.audit.models import Origin
from vaultboard.config import get_config
from vaultboard.entries.service import EntryService
from vaultboard.principals import dal as principals
from vaultboard.principals.models import Principal
from vaultboard.storage.blobs import BlobStore

_service: EntryService | None = None


def get_principal(request: Request) -> Principal:
    """Resolve the calling principal. 401 without an id, 403 without a role."""
    principal_id = request.headers.get("x-principal-id")
    if not principal_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    principal = principals.get_principal(principal_id)
    if principal is None:
        raise HTTPException(status_code=403, detail="User role not found")
    return principal


def get_origin(request: Request) -> Origin:
    """Client address (first X-Forwarded-For hop when proxied) and user agent."""
    forwarded = request.headers.get("x-forwarded-for", "")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip and request.client:
        ip = request.client.host
    return Origin(ip_address=ip or None, user_agent=request.headers.get("user-agent"))


def get_service() -> EntryService:
    global _service
    if _service is None:
        _service = EntryService.from_config(get_config())
    return _service


def get_blob_store() -> BlobStore:
    return get_service().blobs or BlobStore.from_config(get_config())


def reset_service() -> None:
    """Drop the cached service (for testing)."""
    global _service
    _service = None
