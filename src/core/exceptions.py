"""Application error taxonomy.

Every domain error derives from one of five kinds. Each kind carries the HTTP
status it maps to, so routers and the global handler share one mapping:

- NotFoundError: 404
- AuthorizationError: 403
- ValidationFailedError: 422
- ConflictError: 409
- InternalError: 500
"""

from fastapi import HTTPException, status


class AppError(Exception):
    """Base application error."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, code: str = "app_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(AppError):
    """Referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Resource not found", code: str = "not_found"):
        super().__init__(message, code)


class AuthorizationError(AppError):
    """Actor is not allowed to perform the operation."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self, message: str = "Insufficient permission", code: str = "forbidden"
    ):
        super().__init__(message, code)


class ValidationFailedError(AppError):
    """Input or entity state fails a guard."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str = "Validation failed", code: str = "invalid"):
        super().__init__(message, code)


class ConflictError(AppError):
    """Operation is not valid for the current state."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Conflict", code: str = "conflict"):
        super().__init__(message, code)


class InternalError(AppError):
    """A write failed part-way; the operation must be reconciled."""

    def __init__(self, message: str = "Internal error", code: str = "internal_error"):
        super().__init__(message, code)


class RateLimitExceededError(AppError):
    """Too many requests in the current window."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(
        self, message: str = "Rate limit exceeded", code: str = "rate_limit_exceeded"
    ):
        super().__init__(message, code)


def to_http_exception(
    error: AppError, status_map: dict[str, int] | None = None
) -> HTTPException:
    """Convert an application error to HTTPException.

    Args:
        error: The raised application error.
        status_map: Optional per-code overrides of the kind's status.

    Returns:
        HTTPException with the mapped status code and the error message.
    """
    status_code = (status_map or {}).get(error.code, error.status_code)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        return HTTPException(status_code=status_code, detail="Internal server error")
    return HTTPException(status_code=status_code, detail=error.message)
