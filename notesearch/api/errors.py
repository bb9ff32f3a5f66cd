"""Translate search pipeline errors into the JSON error envelope."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from notesearch.search.errors import SearchError
from notesearch.utils.datetime_utils import utc_now_iso

logger = logging.getLogger(__name__)


def error_payload(exc: SearchError) -> dict:
    """``{success: false, error, message, issues?, executionTimeMs?, timestamp}``."""
    return {"success": False, **exc.to_dict(), "timestamp": utc_now_iso()}


async def search_error_handler(request: Request, exc: SearchError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Search request %s failed: %s (%s)", request.url.path, exc.kind, exc.message)
    else:
        logger.info("Search request %s rejected: %s", request.url.path, exc.kind)
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc))


def register_error_handlers(app: FastAPI) -> None:
    """Attach search exception handlers to the FastAPI application."""
    app.add_exception_handler(SearchError, search_error_handler)
