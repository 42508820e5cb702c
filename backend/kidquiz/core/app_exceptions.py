"""Application-specific exceptions for consistent error handling.

Every error the domain raises is an ``AppError`` so the global HTTP handler
can render the ``{error_code, message, details, request_id}`` envelope.
"""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Application error with standardized error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        """Initialize application error."""
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details


class ValidationError(AppError):
    """Malformed input; ``field`` names the offending attribute."""

    def __init__(self, message: str, field: str | None = None, **details: Any):
        if field is not None:
            details = {"field": field, **details}
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="VALIDATION_ERROR",
            message=message,
            details=details or None,
        )


class NotFoundError(AppError):
    def __init__(self, resource: str, resource_id: Any = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code=f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            details={"id": str(resource_id)} if resource_id is not None else None,
        )
        self.resource = resource


class UnauthorizedError(AppError):
    def __init__(self, message: str, code: str = "UNAUTHORIZED"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=code,
            message=message,
        )


class ForbiddenError(AppError):
    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="FORBIDDEN",
            message=message,
        )


class ConflictError(AppError):
    """Mutation rejected because of the current state of the target."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code=code,
            message=message,
            details=details,
        )


class DelegateUnavailable(AppError):
    """An LLM delegate call failed or timed out after its retry."""

    def __init__(self, delegate: str, reason: str | None = None):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="DELEGATE_UNAVAILABLE",
            message=f"The {delegate} service is temporarily unavailable",
            details={"delegate": delegate, "retryable": True, "reason": reason},
        )
        self.delegate = delegate
