"""Pydantic schemas for courses."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CreateCourseRequest(BaseModel):
    """Course creation request."""

    title: str = Field(..., min_length=3, max_length=200, description="Course title")
    description: str | None = Field(
        None, max_length=5000, description="Course description"
    )
    thumbnail_url: str | None = Field(
        None, max_length=500, description="Thumbnail image URL"
    )


class CourseCountersResponse(BaseModel):
    """Content totals of a course."""

    total_modules: int = 0
    total_lessons: int = 0
    total_materials: int = 0
    total_exams: int = 0


class CourseResponse(BaseModel):
    """Course response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    slug: str
    description: str | None = None
    thumbnail_url: str | None = None
    owner_id: UUID
    module_ids: list[UUID] = Field(default_factory=list)
    counters: CourseCountersResponse = Field(default_factory=CourseCountersResponse)
    created_at: datetime
    updated_at: datetime | None = None


class CourseSummary(BaseModel):
    """Short course view embedded in other responses."""

    id: UUID
    title: str
    slug: str
    thumbnail_url: str | None = None
    description: str | None = None


class CourseListResponse(BaseModel):
    """Course list response."""

    items: list[CourseResponse]
    total: int
    has_more: bool
