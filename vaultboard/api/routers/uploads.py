"""Attachment upload and download routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, Response

from vaultboard.api.deps import get_blob_store, get_origin, get_principal, get_service
from vaultboard.audit.models import Origin
from vaultboard.entries.service import EntryService
from vaultboard.principals.models import Principal
from vaultboard.storage.blobs import BlobStore, sanitize_filename

router = APIRouter(tags=["uploads"])


async def _read_capped(request: Request, blobs: BlobStore) -> bytes:
    """Read the request body, stopping as soon as it passes the upload limit."""
    declared = request.headers.get("content-length", "")
    if declared.isdigit():
        blobs.check_size(int(declared))
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        blobs.check_size(len(body))
    return bytes(body)


@router.post("/api/uploads", status_code=201)
async def api_upload(
    request: Request,
    filename: str = Query(..., min_length=1),
    principal: Principal = Depends(get_principal),
    blobs: BlobStore = Depends(get_blob_store),
):
    """Store the raw request body as a blob. Content-Type must be an allowed document type."""
    data = await _read_capped(request, blobs)
    key = blobs.store(data, request.headers.get("content-type"), filename, owner_id=principal.id)
    return {
        "success": True,
        "url": blobs.public_url_for(key),
        "file_name": filename,
        "file_key": key,
        "message": "File uploaded successfully",
    }


@router.get("/blobs/{key:path}")
async def api_download(
    key: str,
    principal: Principal = Depends(get_principal),
    origin: Origin = Depends(get_origin),
    service: EntryService = Depends(get_service),
):
    """Serve an entry's attachment to principals who may view that entry."""
    found = service.attachment(principal, key, origin)
    if found is None:
        return JSONResponse({"error": "File not found"}, status_code=404)
    data, filename = found
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{sanitize_filename(filename)}"'},
    )
