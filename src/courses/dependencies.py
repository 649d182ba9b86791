"""FastAPI dependencies for the course registry.

Provides dependency injection for:
- Course service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.core.exceptions import AppError, to_http_exception
from src.courses.service import CourseService


async def get_course_service(request: Request) -> CourseService:
    """Get course service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "course_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Course service not available",
        )
    return app_state.course_service


CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]


def handle_course_error(error: AppError) -> HTTPException:
    """Convert course errors to HTTP exceptions."""
    return to_http_exception(
        error, {"course_not_found": status.HTTP_404_NOT_FOUND}
    )
