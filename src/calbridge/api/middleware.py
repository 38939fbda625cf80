"""API error handling middleware — consistent error responses.

Registers FastAPI exception handlers that convert domain exceptions into
standardised ``{"success": false, "error": {"code", "message", "details"}}``
JSON responses.

Status code mapping:
- ``ValidationError`` / ``FormatError`` / ``IdentityError`` → 400 Bad Request
- ``CredentialError`` / ``UpstreamError`` → 500 Internal Server Error
- Any other ``Exception`` → 500 Internal Server Error
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from calbridge.api.models import ErrorDetail, ErrorResponse
from calbridge.errors import BridgeError

logger = logging.getLogger(__name__)


async def _handle_bridge_error(
    request: Request,
    exc: BridgeError,
) -> JSONResponse:
    """Render a domain failure with its own status code."""
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    body = ErrorResponse(
        error=ErrorDetail(
            code=exc.code,
            message=exc.message,
            details=exc.details or None,
        )
    )
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    This sits above the Starlette exception handler layer, ensuring that
    even exceptions not caught by ``add_exception_handler`` are converted
    to the standard error envelope rather than bubbling up as raw 500s.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            body = ErrorResponse(
                error=ErrorDetail(
                    code="INTERNAL_ERROR",
                    message="Internal server error",
                )
            )
            return JSONResponse(status_code=500, content=body.model_dump(mode="json"))


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application.

    Call this from ``create_app()`` after constructing the ``FastAPI`` instance.
    """
    app.add_exception_handler(BridgeError, _handle_bridge_error)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)
