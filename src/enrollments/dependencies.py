"""FastAPI dependencies for enrollments."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.core.exceptions import AppError, to_http_exception
from src.enrollments.service import EnrollmentService


async def get_enrollment_service(request: Request) -> EnrollmentService:
    """Get enrollment service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "enrollment_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enrollment service not available",
        )
    return app_state.enrollment_service


EnrollmentServiceDep = Annotated[EnrollmentService, Depends(get_enrollment_service)]


def handle_enrollment_error(error: AppError) -> HTTPException:
    """Convert enrollment errors to HTTP exceptions."""
    status_map = {
        "already_enrolled": status.HTTP_409_CONFLICT,
        "not_enrolled": status.HTTP_404_NOT_FOUND,
        "course_not_found": status.HTTP_404_NOT_FOUND,
    }
    return to_http_exception(error, status_map)
