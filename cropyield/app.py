"""
FastAPI application entry point for the crop-yield backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cropyield.config import get_settings
from cropyield.errors import DuplicateRecordError, RecordNotFoundError
from cropyield.routes import router, webhook_router

logger = logging.getLogger(__name__)


def _record_not_found_handler(request: Request, exc: RecordNotFoundError):
    return JSONResponse({"detail": str(exc)}, status_code=404)


def _duplicate_record_handler(request: Request, exc: DuplicateRecordError):
    logger.warning("Uniqueness violation on %s: %s", request.url.path, exc)
    return JSONResponse({"detail": str(exc)}, status_code=409)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Crop Yield Backend (FastAPI)", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(webhook_router)
    app.add_exception_handler(RecordNotFoundError, _record_not_found_handler)
    app.add_exception_handler(DuplicateRecordError, _duplicate_record_handler)
    return app


app = create_app()
