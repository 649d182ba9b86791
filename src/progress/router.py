"""Student progress API endpoints.

Provides routes for:
- Recording time spent on a module
- Course progress queries
- Exam eligibility
"""

from uuid import UUID

from fastapi import APIRouter

from src.auth.dependencies import StudentUser
from src.core.exceptions import AppError
from src.progress.dependencies import ProgressServiceDep, handle_progress_error
from src.progress.schemas import (
    CourseProgressResponse,
    ExamEligibilityResponse,
    RecordTimeRequest,
    RecordTimeResponse,
)


router = APIRouter(prefix="/v1/progress", tags=["progress"])


@router.put(
    "",
    response_model=RecordTimeResponse,
    summary="Record time spent on a module",
)
async def record_time(
    data: RecordTimeRequest,
    progress_service: ProgressServiceDep,
    user: StudentUser,
) -> RecordTimeResponse:
    """Add time to a module (throttled by the client).

    Completes the module once the time threshold is reached and returns the
    next approved module as an auto-advance hint.
    """
    try:
        result = await progress_service.record_time(
            user.id, data.course_id, data.module_id, data.seconds
        )
    except AppError as e:
        raise handle_progress_error(e) from e
    return RecordTimeResponse(**result)


@router.get(
    "/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: StudentUser,
) -> CourseProgressResponse:
    record = await progress_service.get_course_progress(user.id, course_id)
    return CourseProgressResponse(**record.to_dict())


@router.get(
    "/{course_id}/exam-eligibility",
    response_model=ExamEligibilityResponse,
    summary="Check which exams are open",
)
async def check_exam_eligibility(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: StudentUser,
) -> ExamEligibilityResponse:
    """Approved exams with the course percent each one needs."""
    try:
        result = await progress_service.check_exam_eligibility(user.id, course_id)
    except AppError as e:
        raise handle_progress_error(e) from e
    return ExamEligibilityResponse(**result)
