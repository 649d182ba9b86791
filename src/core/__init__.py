# Core infrastructure
from src.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_request_id,
    set_user_id,
)
from src.core.exceptions import (
    AppError,
    AuthorizationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationFailedError,
)
from src.core.logging import configure_structlog, get_logger


__all__ = [
    "AppError",
    "AuthorizationError",
    "ConflictError",
    "InternalError",
    "NotFoundError",
    "RequestContext",
    "ValidationFailedError",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "set_request_id",
    "set_user_id",
]
