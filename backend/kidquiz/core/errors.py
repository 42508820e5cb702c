"""Error envelope and the global exception handlers.

Every error leaves the API as ``{error_code, message, details, request_id}``.
"""

import uuid
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from kidquiz.core.app_exceptions import AppError
from kidquiz.core.config import settings
from kidquiz.core.logging import get_logger

logger = get_logger(__name__)

# Seconds a client should wait before retrying a delegate-backed request
DELEGATE_RETRY_AFTER_SECONDS = 5

# Codes for framework-raised HTTPExceptions (unknown routes, wrong methods)
_STATUS_CODES = {
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Any | None = None
    request_id: str | None = None


def get_request_id(request: Request) -> str:
    """Request ID set by the middleware, or a fresh one."""
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        request_id=get_request_id(request),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and query strings (422)."""
    details = [
        {
            "field": ".".join(str(loc) for loc in error.get("loc", [])),
            "issue": error.get("msg", "Validation error"),
            "type": error.get("type", "validation_error"),
        }
        for error in exc.errors()
    ]
    return error_response(
        request, status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", "Invalid request data", details
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc, AppError):
        headers = None
        if exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
            logger.warning(
                "Delegate unavailable",
                extra={"request_id": get_request_id(request), "code": exc.code, "details": exc.details},
            )
            headers = {"Retry-After": str(DELEGATE_RETRY_AFTER_SECONDS)}
        elif exc.status_code == status.HTTP_409_CONFLICT:
            logger.info(
                "Request conflicts with current state",
                extra={"request_id": get_request_id(request), "code": exc.code, "path": request.url.path},
            )
        return error_response(request, exc.status_code, exc.code, exc.message, exc.details, headers)

    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response(
        request,
        exc.status_code,
        _STATUS_CODES.get(exc.status_code, "HTTP_ERROR"),
        message,
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unhandled becomes a logged 500; internals stay hidden in prod."""
    logger.error(
        "Unhandled exception",
        extra={"request_id": get_request_id(request), "error_type": type(exc).__name__},
        exc_info=exc,
    )
    if settings.ENV == "prod":
        return error_response(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "An internal server error occurred"
        )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        str(exc),
        {"type": type(exc).__name__},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
