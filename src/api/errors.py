"""Exception handlers mapping service errors to JSON responses."""

from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.errors import AppError
from src.models.response import ErrorResponse

logger = structlog.get_logger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError with its own status and message."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.message,
        path=request.url.path,
    )
    return _error_response(exc.status_code, exc.message)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as 400 with the first problem named."""
    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = f"Field '{field}': {first_error.get('msg', 'Validation failed')}"
    else:
        message = "Request validation failed"

    logger.warning("validation_error", detail=message, path=request.url.path)
    return _error_response(400, message)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the diagnostic and answer 500 without leaking details."""
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    logger.error(
        "unhandled_exception",
        correlation_id=correlation_id,
        error_type=type(exc).__name__,
        error=str(exc),
        path=request.url.path,
        exc_info=exc,
    )
    return _error_response(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
