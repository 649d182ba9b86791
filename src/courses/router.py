"""Course registry API endpoints.

Provides routes for:
- Course creation, listing and lookup
- Counter reconciliation (admin)

Course-scoped content listings live in the content router.
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.auth.dependencies import AdminUser, CurrentUser, StaffUser
from src.core.exceptions import AppError
from src.courses.dependencies import CourseServiceDep, handle_course_error
from src.courses.models import Course, CourseCounters
from src.courses.schemas import (
    CourseCountersResponse,
    CourseListResponse,
    CourseResponse,
    CreateCourseRequest,
)


router = APIRouter(prefix="/v1/courses", tags=["courses"])


def _to_response(course: Course, counters: CourseCounters | None = None) -> CourseResponse:
    data = course.to_dict()
    if counters is not None:
        data["counters"] = CourseCountersResponse(**counters.to_dict())
    return CourseResponse(**data)


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
)
async def create_course(
    data: CreateCourseRequest,
    course_service: CourseServiceDep,
    user: StaffUser,
) -> CourseResponse:
    """Create a new course (STAFF or ADMIN)."""
    course = await course_service.create_course(data, user.id)
    return _to_response(course)


@router.get(
    "",
    response_model=CourseListResponse,
    summary="List courses",
)
async def list_courses(
    course_service: CourseServiceDep,
    user: CurrentUser,
    limit: int = Query(50, ge=1, le=200),
) -> CourseListResponse:
    courses = await course_service.list_courses(limit=limit)
    items = [_to_response(c) for c in courses]
    return CourseListResponse(items=items, total=len(items), has_more=len(items) >= limit)


@router.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course with content totals",
)
async def get_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: CurrentUser,
) -> CourseResponse:
    try:
        course = await course_service.require_course(course_id)
    except AppError as e:
        raise handle_course_error(e) from e
    counters = await course_service.get_counters(course_id)
    return _to_response(course, counters)


@router.post(
    "/{course_id}/recount",
    response_model=CourseCountersResponse,
    summary="Reconcile course counters",
)
async def recount_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: AdminUser,
) -> CourseCountersResponse:
    """Recompute content totals from stored content (ADMIN only)."""
    try:
        counters = await course_service.recount(course_id)
    except AppError as e:
        raise handle_course_error(e) from e
    return CourseCountersResponse(**counters.to_dict())
