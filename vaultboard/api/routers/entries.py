"""Knowledge entry routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from vaultboard.api.deps import get_origin, get_principal, get_service
from vaultboard.audit.models import Origin
from vaultboard.entries.expiration import INTERACTIVE_HORIZON_DAYS
from vaultboard.entries.models import (
    Category,
    Classification,
    EntryCreate,
    EntryFilters,
    EntrySort,
    EntryUpdate,
    Page,
    entry_to_dict,
)
from vaultboard.entries.service import EXPORT_FORMATS, EntryService
from vaultboard.principals.models import Principal

router = APIRouter(prefix="/api/entries", tags=["entries"])


@router.get("")
async def api_list_entries(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    category: Category | None = Query(None),
    classification: Classification | None = Query(None),
    tags: list[str] | None = Query(None),
    search: str | None = Query(None),
    principal: Principal = Depends(get_principal),
    service: EntryService = Depends(get_service),
):
    try:
        sort = EntrySort(field=sort_by, descending=sort_order == "desc")
    except ValueError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    filters = EntryFilters(
        category=category, classification=classification, tags=tags or [], search=search or None
    )
    result = service.list(principal, filters, sort, Page(page=page, limit=limit))
    return {"success": True, **result}


@router.post("", status_code=201)
async def api_create_entry(
    body: EntryCreate,
    principal: Principal = Depends(get_principal),
    origin: Origin = Depends(get_origin),
    service: EntryService = Depends(get_service),
):
    entry = service.create(principal, body, origin)
    return {"success": True, "message": "Entry created successfully", "data": entry_to_dict(entry)}


# Declared before /{entry_id} so "expiring" is not taken for an id.
@router.get("/expiring")
async def api_expiring_entries(
    days: int = Query(INTERACTIVE_HORIZON_DAYS, ge=1, le=365),
    principal: Principal = Depends(get_principal),
    service: EntryService = Depends(get_service),
):
    return {"success": True, "data": service.expiring(principal, days)}


@router.get("/{entry_id}")
async def api_get_entry(
    entry_id: str,
    principal: Principal = Depends(get_principal),
    origin: Origin = Depends(get_origin),
    service: EntryService = Depends(get_service),
):
    entry = service.get(principal, entry_id, origin)
    return {"success": True, "data": entry_to_dict(entry)}


@router.patch("/{entry_id}")
async def api_update_entry(
    entry_id: str,
    body: EntryUpdate,
    principal: Principal = Depends(get_principal),
    origin: Origin = Depends(get_origin),
    service: EntryService = Depends(get_service),
):
    entry = service.update(principal, entry_id, body, origin)
    return {"success": True, "message": "Entry updated successfully", "data": entry_to_dict(entry)}


@router.delete("/{entry_id}")
async def api_delete_entry(
    entry_id: str,
    principal: Principal = Depends(get_principal),
    origin: Origin = Depends(get_origin),
    service: EntryService = Depends(get_service),
):
    service.delete(principal, entry_id, origin)
    return {"success": True, "message": "Entry deleted successfully"}


@router.get("/{entry_id}/export")
async def api_export_entry(
    entry_id: str,
    format: str = Query("json"),
    principal: Principal = Depends(get_principal),
    origin: Origin = Depends(get_origin),
    service: EntryService = Depends(get_service),
):
    if format not in EXPORT_FORMATS:
        return JSONResponse({"error": "Invalid format. Use json or txt"}, status_code=400)
    body, media_type, filename = service.export(principal, entry_id, format, origin)
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{entry_id}/access")
async def api_entry_access(
    entry_id: str,
    principal: Principal = Depends(get_principal),
    service: EntryService = Depends(get_service),
):
    return {"success": True, "data": service.access_report(principal, entry_id)}
