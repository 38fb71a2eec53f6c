"""
VaultBoard API — FastAPI app on port 9200.

Run with ``vaultboard serve`` or ``uvicorn vaultboard.api.app:app``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from vaultboard import __version__
from vaultboard.api.middleware import CorrelationMiddleware
from vaultboard.api.routers import cron, entries, health, uploads
from vaultboard.errors import AuthorizationDenied, EntryNotFound, InvalidUpload

logger = logging.getLogger(__name__)

app = FastAPI(title="VaultBoard", version=__version__)
app.add_middleware(CorrelationMiddleware)

app.include_router(health.router)
app.include_router(entries.router)
app.include_router(uploads.router)
app.include_router(cron.router)


@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(AuthorizationDenied)
async def forbidden(request: Request, exc: AuthorizationDenied):
    return JSONResponse({"error": str(exc)}, status_code=403)


@app.exception_handler(EntryNotFound)
async def not_found(request: Request, exc: EntryNotFound):
    return JSONResponse({"error": "Entry not found"}, status_code=404)


@app.exception_handler(InvalidUpload)
async def bad_upload(request: Request, exc: InvalidUpload):
    return JSONResponse({"error": str(exc)}, status_code=400)
