"""Error handling middleware.

Every error body has the shape
``{"success": false, "error": <code>, "message": ..., "details"?: [...], "path": ...}``.
"""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medsync.core.exceptions import AppException, ErrorCode

logger = structlog.get_logger(__name__)


def _error_body(
    request: Request, code: str, message: str, details: list[Any] | None = None
) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": code, "message": message}
    if details:
        body["details"] = details
    body["path"] = request.url.path
    return body


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle application exceptions by their error code.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("request_error", path=request.url.path, **exc.to_dict())

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.code, exc.message, getattr(exc, "details", None)),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions raised by routing (unknown path, wrong method)."""
    code = ErrorCode.NOT_FOUND if exc.status_code == 404 else "HTTP_ERROR"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, code, str(exc.detail)),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle request parsing errors such as a malformed JSON body.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        400 response with one entry per failing field
    """
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body") or "body",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(request, ErrorCode.VALIDATION_ERROR, "Validation failed", details),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON error response
    """
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, ErrorCode.INTERNAL_ERROR, "An unexpected error occurred"),
    )
