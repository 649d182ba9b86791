"""Enrollment API endpoints.

Provides routes for:
- Enrolling in a course
- Listing and checking enrollments
- Withdrawing from or completing a course
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import CurrentUser, StudentUser
from src.auth.permissions import is_admin
from src.core.exceptions import AppError
from src.courses.models import Course
from src.courses.schemas import CourseSummary
from src.enrollments.dependencies import EnrollmentServiceDep, handle_enrollment_error
from src.enrollments.models import Enrollment
from src.enrollments.schemas import (
    EnrollmentCheckResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollmentStatusRequest,
    EnrollRequest,
)


router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


def _to_response(enrollment: Enrollment, course: Course | None = None) -> EnrollmentResponse:
    summary = CourseSummary(**course.to_dict()) if course else None
    return EnrollmentResponse(**enrollment.to_dict(), course=summary)


@router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll(
    data: EnrollRequest,
    service: EnrollmentServiceDep,
    user: StudentUser,
) -> EnrollmentResponse:
    try:
        enrollment = await service.enroll(user.id, data.course_id)
    except AppError as e:
        raise handle_enrollment_error(e) from e
    return _to_response(enrollment)


@router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="List my enrollments",
)
async def list_my_enrollments(
    service: EnrollmentServiceDep,
    user: StudentUser,
) -> EnrollmentListResponse:
    """Enrollments of the current student, most recent first."""
    pairs = await service.list_for_student(user.id)
    items = [_to_response(enrollment, course) for enrollment, course in pairs]
    return EnrollmentListResponse(items=items, total=len(items))


@router.get(
    "/check/{course_id}",
    response_model=EnrollmentCheckResponse,
    summary="Check enrollment in course",
)
async def check_enrollment(
    course_id: UUID,
    service: EnrollmentServiceDep,
    user: StudentUser,
) -> EnrollmentCheckResponse:
    enrollment = await service.get_active(user.id, course_id)
    if enrollment is None:
        return EnrollmentCheckResponse(enrolled=False)
    return EnrollmentCheckResponse(enrolled=True, enrollment=_to_response(enrollment))


@router.put(
    "/{course_id}/status",
    response_model=EnrollmentResponse,
    summary="Withdraw from or complete a course",
)
async def set_enrollment_status(
    course_id: UUID,
    data: EnrollmentStatusRequest,
    service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Students act on their own enrollment; admins pass ``student_id``."""
    student_id = user.id
    if data.student_id is not None and data.student_id != user.id:
        if not is_admin(user.role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only admins can change another student's enrollment",
            )
        student_id = data.student_id

    try:
        enrollment = await service.set_status(student_id, course_id, data.status)
    except AppError as e:
        raise handle_enrollment_error(e) from e
    return _to_response(enrollment)
