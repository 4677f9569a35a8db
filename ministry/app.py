"""
FastAPI application entry point for the ministry site backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ministry.config import get_settings
from ministry.routes import router
from ministry.store import StoreError

logger = logging.getLogger(__name__)


async def _store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.exception(
        "Store failure on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=503, content={"detail": "Storage temporarily unavailable"}
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Ministry Site Backend", version="0.1.0")
    app.include_router(router, prefix=settings.api_prefix)
    app.add_exception_handler(StoreError, _store_error_handler)
    return app


app = create_app()
