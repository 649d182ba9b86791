"""Pydantic schemas for enrollments."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.courses.schemas import CourseSummary
from src.enrollments.models import EnrollmentStatus


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    course_id: UUID


class EnrollmentStatusRequest(BaseModel):
    """Withdraw from or complete an enrollment.

    Admins set ``student_id`` to act on a student's enrollment.
    """

    status: EnrollmentStatus
    student_id: UUID | None = None


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    course_id: UUID
    status: EnrollmentStatus
    enrolled_at: datetime
    completed_at: datetime | None = None
    is_completed: bool = False
    percent_complete: int = Field(0, ge=0, le=100)
    course: CourseSummary | None = None


class EnrollmentListResponse(BaseModel):
    items: list[EnrollmentResponse]
    total: int


class EnrollmentCheckResponse(BaseModel):
    """Whether the student is enrolled, with the active enrollment."""

    enrolled: bool
    enrollment: EnrollmentResponse | None = None
