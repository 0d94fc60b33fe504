"""
Exception Handlers for the Content Engine

Maps engine exceptions onto JSON responses for the HTTP layer that sits in
front of the engine.

Error Response Format:
{
    "error": {
        "status_code": 423,
        "error_code": "CONTENT_LOCKED",
        "message": "Content node '12' is locked by Jane until 2026-01-01T10:30:00",
        "type": "Locked",
        "details": {"node_id": 12, "locked_by": "Jane", ...},
        "path": "/api/v1/stories/12"
    }
}
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from content_engine.exceptions import EngineError, ErrorCode

logger = logging.getLogger(__name__)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        status_code: HTTP status code
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional error details
        path: Request path that caused the error

    Returns:
        JSONResponse with standardized error format
    """
    error_response: dict[str, Any] = {
        "error": {
            "status_code": status_code,
            "message": message,
            "type": get_error_type(status_code),
        }
    }

    if error_code:
        error_response["error"]["error_code"] = error_code.value if isinstance(error_code, ErrorCode) else error_code

    if details:
        error_response["error"]["details"] = details

    if path:
        error_response["error"]["path"] = path

    return JSONResponse(status_code=status_code, content=error_response)


def get_error_type(status_code: int) -> str:
    """Get a human-readable error type based on status code."""
    error_types = {
        400: "Bad Request",
        404: "Not Found",
        409: "Conflict",
        422: "Validation Error",
        423: "Locked",
        500: "Internal Server Error",
    }
    return error_types.get(status_code, "Error")


async def engine_exception_handler(request: Request, exc: EngineError) -> JSONResponse:
    """
    Handle content engine exceptions.

    Integrity faults (5xx) are logged as errors, everything else as warnings
    since the caller is expected to correct the request and retry.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "error_code": exc.error_code.value,
            "path": request.url.path,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details if exc.details else None,
        path=request.url.path,
    )


def register_exception_handlers(app) -> None:
    """
    Register the engine's exception handlers with a FastAPI app.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(EngineError, engine_exception_handler)
