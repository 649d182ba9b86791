"""Pydantic schemas for reviewable content."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.content.models import MaterialCategory, MaterialType, VideoType
from src.content.validators import ResourceType
from src.workflow.models import ApprovalStatus, ContentKind


# ==============================================================================
# Shared
# ==============================================================================

EditorContent = dict[str, Any] | str | None


class RejectRequest(BaseModel):
    """Correction request sent back to the owner."""

    reason: str = Field(..., max_length=2000, description="What needs to change")


class ApproveRequest(BaseModel):
    """Optional reviewer remarks on approval."""

    remarks: str | None = Field(None, max_length=2000)


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str
    success: bool = True


class VersionResponse(BaseModel):
    """Archived payload of an earlier version."""

    version: int
    saved_at: datetime
    saved_by: UUID | None = None
    payload: dict[str, Any]


class ContentBaseResponse(BaseModel):
    """Fields shared by every content kind."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    kind: ContentKind
    course_id: UUID
    owner_id: UUID
    title: str
    approval_status: ApprovalStatus
    rejection_reason: str | None = None
    admin_remarks: str | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    is_published: bool = False
    published_at: datetime | None = None
    position: int | None = None
    version: int = 1
    created_at: datetime
    updated_at: datetime | None = None


# ==============================================================================
# Lessons
# ==============================================================================


class LessonResourceIn(BaseModel):
    """Resource entry sent with a lesson."""

    type: ResourceType = ResourceType.OTHER
    url: str = Field(..., min_length=1, max_length=1000)
    name: str = Field(..., min_length=1, max_length=255)
    size: int = Field(0, ge=0)
    uploaded_at: datetime | None = None


class CreateLessonRequest(BaseModel):
    """Lesson creation request."""

    module_id: UUID
    title: str = Field(..., min_length=3, max_length=200)
    description: str | None = Field(None, max_length=500)
    content: EditorContent = None
    duration: int = Field(0, ge=0, description="Duration in minutes")
    resources: list[LessonResourceIn] = Field(default_factory=list)
    video_url: str | None = Field(None, max_length=1000)
    video_type: VideoType | None = None
    video_duration: int | None = Field(None, ge=0)
    thumbnail_url: str | None = Field(None, max_length=1000)
    is_free_preview: bool = False
    preview_duration: int | None = Field(None, ge=0)


class UpdateLessonRequest(BaseModel):
    """Lesson update request (all fields optional)."""

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=500)
    content: EditorContent = None
    duration: int | None = Field(None, ge=0)
    resources: list[LessonResourceIn] | None = None
    video_url: str | None = Field(None, max_length=1000)
    video_type: VideoType | None = None
    video_duration: int | None = Field(None, ge=0)
    thumbnail_url: str | None = Field(None, max_length=1000)
    is_free_preview: bool | None = None
    preview_duration: int | None = Field(None, ge=0)


class LessonResponse(ContentBaseResponse):
    """Lesson response."""

    module_id: UUID
    description: str | None = None
    content: dict[str, Any] | None = None
    duration: int = 0
    resources: list[dict[str, Any]] = Field(default_factory=list)
    video_url: str | None = None
    video_type: VideoType | None = None
    video_duration: int | None = None
    thumbnail_url: str | None = None
    is_free_preview: bool = False
    preview_duration: int | None = None


# ==============================================================================
# Modules
# ==============================================================================


class CreateModuleRequest(BaseModel):
    """Module creation request."""

    course_id: UUID
    title: str = Field(..., min_length=3, max_length=200)
    description: str | None = Field(None, max_length=2000)
    content: EditorContent = None
    duration: int | None = Field(None, ge=0, description="Duration in minutes")
    thumbnail_url: str | None = Field(None, max_length=1000)


class UpdateModuleRequest(BaseModel):
    """Module update request (all fields optional)."""

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=2000)
    content: EditorContent = None
    duration: int | None = Field(None, ge=0)
    thumbnail_url: str | None = Field(None, max_length=1000)


class ModuleResponse(ContentBaseResponse):
    """Module response."""

    description: str | None = None
    content: dict[str, Any] | None = None
    duration: int | None = None
    thumbnail_url: str | None = None
    lesson_ids: list[UUID] = Field(default_factory=list)


# ==============================================================================
# Materials
# ==============================================================================


class UpdateMaterialRequest(BaseModel):
    """Material update request. The file itself is replaced by re-uploading."""

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=2000)
    material_type: MaterialType | None = None
    preview_duration: int | None = Field(None, ge=0)


class MaterialResponse(ContentBaseResponse):
    """Material response."""

    description: str | None = None
    material_type: MaterialType
    category: MaterialCategory
    file_url: str | None = None
    file_name: str | None = None
    file_size: int = 0
    preview_duration: int = 0


class MaterialStats(BaseModel):
    """Counts of a course's materials (modules counted alongside)."""

    total: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)


class CourseMaterialsResponse(BaseModel):
    """Materials of a course with the course modules and stats."""

    materials: list[MaterialResponse]
    modules: list[ModuleResponse]
    stats: MaterialStats


# ==============================================================================
# Exams
# ==============================================================================


class CreateExamRequest(BaseModel):
    """Exam creation request. Questions are validated on the entity."""

    course_id: UUID
    title: str = Field(..., min_length=3, max_length=200)
    description: str | None = Field(None, max_length=2000)
    duration: int = Field(0, ge=0, description="Duration in minutes")
    passing_score: int = Field(70, ge=0, le=100)
    activation_threshold: int = Field(0, ge=0, le=100)
    questions: list[dict[str, Any]] = Field(default_factory=list)


class UpdateExamRequest(BaseModel):
    """Exam update request (all fields optional)."""

    title: str | None = Field(None, min_length=3, max_length=200)
    description: str | None = Field(None, max_length=2000)
    duration: int | None = Field(None, ge=0)
    passing_score: int | None = Field(None, ge=0, le=100)
    activation_threshold: int | None = Field(None, ge=0, le=100)
    questions: list[dict[str, Any]] | None = None


class ExamResponse(ContentBaseResponse):
    """Exam response."""

    description: str | None = None
    duration: int = 0
    passing_score: int = 70
    activation_threshold: int = 0
    questions: list[dict[str, Any]] = Field(default_factory=list)


# ==============================================================================
# Uploads
# ==============================================================================


class EditorImageFile(BaseModel):
    url: str


class EditorImageResponse(BaseModel):
    """Upload result in the shape the editor image tool expects."""

    success: int = 1
    file: EditorImageFile
