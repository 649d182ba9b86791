"""Pydantic schemas for progress tracking."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class RecordTimeRequest(BaseModel):
    """Time a student spent on a module since the last update."""

    course_id: UUID
    module_id: UUID
    seconds: int = Field(..., ge=1, le=86400, description="Seconds to add")


class RecordTimeResponse(BaseModel):
    """Outcome of a time update."""

    module_completed: bool
    percent_complete: int = Field(..., ge=0, le=100)
    next_module_id: UUID | None = None
    time_spent_seconds: int


class ModuleProgressResponse(BaseModel):
    module_id: UUID
    time_spent_seconds: int = 0
    completed: bool = False
    completed_at: datetime | None = None
    last_updated: datetime | None = None


class CourseProgressResponse(BaseModel):
    """Progress of the current student in a course."""

    student_id: UUID
    course_id: UUID
    percent_complete: int = Field(0, ge=0, le=100)
    completed_module_ids: list[UUID] = Field(default_factory=list)
    last_accessed: datetime | None = None
    created_at: datetime | None = None
    modules: list[ModuleProgressResponse] = Field(default_factory=list)


class ExamEligibility(BaseModel):
    exam_id: UUID
    title: str
    passing_score: int
    activation_threshold: int
    eligible: bool


class ExamEligibilityResponse(BaseModel):
    """Approved exams of a course and which ones the student may take."""

    course_id: UUID
    percent_complete: int = Field(0, ge=0, le=100)
    exams: list[ExamEligibility] = Field(default_factory=list)
