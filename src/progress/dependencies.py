"""FastAPI dependencies for progress tracking.

Provides dependency injection for:
- Progress service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.core.exceptions import AppError, to_http_exception
from src.progress.service import ProgressService


async def get_progress_service(request: Request) -> ProgressService:
    """Get progress service from app state.

    Args:
        request: FastAPI request

    Returns:
        ProgressService instance
    """
    app_state = request.app.state
    if not getattr(app_state, "progress_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return app_state.progress_service


# Type alias for dependency injection
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]


def handle_progress_error(error: AppError) -> HTTPException:
    """Convert progress errors to HTTP exceptions.

    A student without an active enrollment may not record progress.
    """
    status_map = {
        "not_enrolled": status.HTTP_403_FORBIDDEN,
        "module_not_found": status.HTTP_404_NOT_FOUND,
    }
    return to_http_exception(error, status_map)
