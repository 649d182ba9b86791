"""Database models for reviewable course content.

Cassandra table definitions for:
- lessons, modules, materials, exams: one row per entity, full-row upserts
- lessons_by_module, modules_by_course: ordering claims keyed by position
- approved_modules_by_course: ordered approved modules (progress, students)
- content_by_owner, content_by_status, content_by_course: lookup tables

JSON-shaped fields (editor documents, questions, resources, version history)
are stored as TEXT serialized with orjson.
"""

from enum import Enum
from typing import Any, ClassVar
from uuid import UUID

import orjson

from src.content.validators import (
    document_has_blocks,
    parse_document,
    parse_questions,
    parse_resources,
)
from src.core.exceptions import ValidationFailedError
from src.workflow.models import ContentEntity, ContentKind, VersionHistory


class MaterialType(str, Enum):
    """Material type chosen by the uploader."""

    PDF = "PDF"
    VIDEO = "Video"
    AUDIO = "Audio"
    NOTE = "Note"


class MaterialCategory(str, Enum):
    """Rendering category of a material."""

    PDF = "pdf"
    VIDEO = "video"
    AUDIO = "audio"


CATEGORY_BY_TYPE: dict[MaterialType, MaterialCategory] = {
    MaterialType.PDF: MaterialCategory.PDF,
    MaterialType.VIDEO: MaterialCategory.VIDEO,
    MaterialType.AUDIO: MaterialCategory.AUDIO,
    MaterialType.NOTE: MaterialCategory.PDF,
}


class VideoType(str, Enum):
    """Where a lesson video is hosted."""

    UPLOAD = "upload"
    YOUTUBE = "youtube"
    VIMEO = "vimeo"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

_WORKFLOW_COLUMNS_CQL = """
    course_id UUID,
    owner_id UUID,
    title TEXT,
    approval_status TEXT,
    rejection_reason TEXT,
    admin_remarks TEXT,
    approved_by UUID,
    approved_at TIMESTAMP,
    is_published BOOLEAN,
    published_at TIMESTAMP,
    position INT,
    version INT,
    previous_versions TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP"""

LESSON_TABLE_CQL = (
    """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    module_id UUID,
    description TEXT,
    content TEXT,
    duration INT,
    resources TEXT,
    video_url TEXT,
    video_type TEXT,
    video_duration INT,
    thumbnail_url TEXT,
    is_free_preview BOOLEAN,
    preview_duration INT,"""
    + _WORKFLOW_COLUMNS_CQL
    + "\n)\n"
)

MODULE_TABLE_CQL = (
    """
CREATE TABLE IF NOT EXISTS {keyspace}.modules (
    id UUID PRIMARY KEY,
    description TEXT,
    content TEXT,
    duration INT,
    thumbnail_url TEXT,
    lesson_ids LIST<UUID>,"""
    + _WORKFLOW_COLUMNS_CQL
    + "\n)\n"
)

MATERIAL_TABLE_CQL = (
    """
CREATE TABLE IF NOT EXISTS {keyspace}.materials (
    id UUID PRIMARY KEY,
    description TEXT,
    material_type TEXT,
    category TEXT,
    file_url TEXT,
    file_name TEXT,
    file_size BIGINT,
    preview_duration INT,"""
    + _WORKFLOW_COLUMNS_CQL
    + "\n)\n"
)

EXAM_TABLE_CQL = (
    """
CREATE TABLE IF NOT EXISTS {keyspace}.exams (
    id UUID PRIMARY KEY,
    description TEXT,
    duration INT,
    passing_score INT,
    activation_threshold INT,
    questions TEXT,"""
    + _WORKFLOW_COLUMNS_CQL
    + "\n)\n"
)

# Ordering claims: one row per (parent, position), claimed with IF NOT EXISTS
LESSONS_BY_MODULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_module (
    module_id UUID,
    position INT,
    lesson_id UUID,
    PRIMARY KEY (module_id, position)
) WITH CLUSTERING ORDER BY (position ASC)
"""

MODULES_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.modules_by_course (
    course_id UUID,
    position INT,
    module_id UUID,
    PRIMARY KEY (course_id, position)
) WITH CLUSTERING ORDER BY (position ASC)
"""

APPROVED_MODULES_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.approved_modules_by_course (
    course_id UUID,
    position INT,
    module_id UUID,
    PRIMARY KEY (course_id, position)
) WITH CLUSTERING ORDER BY (position ASC)
"""

# Lookup tables
CONTENT_BY_OWNER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.content_by_owner (
    owner_id UUID,
    kind TEXT,
    created_at TIMESTAMP,
    content_id UUID,
    PRIMARY KEY ((owner_id, kind), created_at, content_id)
) WITH CLUSTERING ORDER BY (created_at DESC, content_id ASC)
"""

CONTENT_BY_STATUS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.content_by_status (
    kind TEXT,
    approval_status TEXT,
    created_at TIMESTAMP,
    content_id UUID,
    PRIMARY KEY ((kind, approval_status), created_at, content_id)
) WITH CLUSTERING ORDER BY (created_at DESC, content_id ASC)
"""

CONTENT_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.content_by_course (
    course_id UUID,
    kind TEXT,
    created_at TIMESTAMP,
    content_id UUID,
    PRIMARY KEY (course_id, kind, created_at, content_id)
) WITH CLUSTERING ORDER BY (kind ASC, created_at DESC, content_id ASC)
"""

CONTENT_TABLES_CQL = [
    # Main tables
    LESSON_TABLE_CQL,
    MODULE_TABLE_CQL,
    MATERIAL_TABLE_CQL,
    EXAM_TABLE_CQL,
    # Ordering
    LESSONS_BY_MODULE_TABLE_CQL,
    MODULES_BY_COURSE_TABLE_CQL,
    APPROVED_MODULES_BY_COURSE_TABLE_CQL,
    # Lookups
    CONTENT_BY_OWNER_TABLE_CQL,
    CONTENT_BY_STATUS_TABLE_CQL,
    CONTENT_BY_COURSE_TABLE_CQL,
]


# ==============================================================================
# Row Mapping
# ==============================================================================

WORKFLOW_COLUMNS: tuple[str, ...] = (
    "id",
    "course_id",
    "owner_id",
    "title",
    "approval_status",
    "rejection_reason",
    "admin_remarks",
    "approved_by",
    "approved_at",
    "is_published",
    "published_at",
    "position",
    "version",
    "previous_versions",
    "created_at",
    "updated_at",
)


def dump_json(value: Any) -> str:
    return orjson.dumps(value).decode()


def load_json(value: str | None, default: Any) -> Any:
    if not value:
        return default
    return orjson.loads(value)


class CassandraRowMixin:
    """Generic mapping between an entity and its table row.

    ``COLUMNS`` lists the columns written by a full-row upsert. Columns
    maintained by atomic collection updates (e.g. ``modules.lesson_ids``)
    are left out so an upsert never overwrites them.
    """

    TABLE: ClassVar[str]
    COLUMNS: ClassVar[tuple[str, ...]]
    JSON_COLUMNS: ClassVar[dict[str, Any]] = {}

    @classmethod
    def row_kwargs(cls, row: Any) -> dict[str, Any]:
        kwargs = {column: getattr(row, column, None) for column in cls.COLUMNS}
        for column, default in cls.JSON_COLUMNS.items():
            kwargs[column] = load_json(kwargs.get(column), default)
        kwargs["previous_versions"] = VersionHistory.from_list(
            load_json(getattr(row, "previous_versions", None), [])
        )
        return kwargs

    @classmethod
    def from_row(cls, row: Any):
        return cls(**cls.row_kwargs(row))

    def to_row(self) -> list[Any]:
        """Values in ``COLUMNS`` order, ready to bind to the upsert."""
        values = []
        for column in self.COLUMNS:
            value = getattr(self, column)
            if column == "previous_versions":
                value = dump_json(value.to_list())
            elif column in self.JSON_COLUMNS:
                value = dump_json(value)
            elif isinstance(value, Enum):
                value = value.value
            values.append(value)
        return values


# ==============================================================================
# Entity Classes
# ==============================================================================


class Lesson(CassandraRowMixin, ContentEntity):
    """Lesson inside a module.

    Attributes:
        module_id: Parent module; the lesson's position is unique within it
        content: Editor document
        duration: Minutes
        resources: Attached files [{type, url, name, size, uploaded_at}]
        video_url, video_type, video_duration: Optional lesson video
        is_free_preview, preview_duration: Free preview for visitors
    """

    kind = ContentKind.LESSON
    TABLE = "lessons"
    PAYLOAD_FIELDS = ("content",)
    EDITABLE_FIELDS = frozenset(
        {
            "title",
            "description",
            "content",
            "duration",
            "resources",
            "video_url",
            "video_type",
            "video_duration",
            "thumbnail_url",
            "is_free_preview",
            "preview_duration",
        }
    )
    COLUMNS = (
        *WORKFLOW_COLUMNS,
        "module_id",
        "description",
        "content",
        "duration",
        "resources",
        "video_url",
        "video_type",
        "video_duration",
        "thumbnail_url",
        "is_free_preview",
        "preview_duration",
    )
    JSON_COLUMNS: ClassVar[dict[str, Any]] = {"content": None, "resources": []}

    def __init__(
        self,
        module_id: UUID | None = None,
        description: str | None = None,
        content: dict[str, Any] | None = None,
        duration: int | None = None,
        resources: list[dict[str, Any]] | None = None,
        video_url: str | None = None,
        video_type: str | None = None,
        video_duration: int | None = None,
        thumbnail_url: str | None = None,
        is_free_preview: bool = False,
        preview_duration: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.module_id = module_id
        self.description = description
        self.content = content or {"blocks": []}
        self.duration = duration or 0
        self.resources = resources or []
        self.video_url = video_url
        self.video_type = video_type
        self.video_duration = video_duration
        self.thumbnail_url = thumbnail_url
        self.is_free_preview = bool(is_free_preview)
        self.preview_duration = preview_duration

    @property
    def parent_id(self) -> UUID | None:
        return self.module_id

    def has_content(self) -> bool:
        return document_has_blocks(self.content)

    def validate(self) -> None:
        super().validate()
        if self.module_id is None:
            raise ValidationFailedError("Lesson must belong to a module")
        self.content = parse_document(self.content)
        self.resources = parse_resources(self.resources)
        if self.video_type is not None:
            try:
                self.video_type = VideoType(self.video_type).value
            except ValueError as e:
                raise ValidationFailedError(
                    f"Unknown video type: {self.video_type}"
                ) from e
        _require_non_negative(
            duration=self.duration,
            video_duration=self.video_duration,
            preview_duration=self.preview_duration,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.workflow_dict(),
            "module_id": self.module_id,
            "description": self.description,
            "content": self.content,
            "duration": self.duration,
            "resources": self.resources,
            "video_url": self.video_url,
            "video_type": self.video_type,
            "video_duration": self.video_duration,
            "thumbnail_url": self.thumbnail_url,
            "is_free_preview": self.is_free_preview,
            "preview_duration": self.preview_duration,
        }


class Module(CassandraRowMixin, ContentEntity):
    """Module inside a course, holding an ordered list of lessons.

    ``duration`` (minutes) drives the progress completion threshold.
    """

    kind = ContentKind.MODULE
    TABLE = "modules"
    PAYLOAD_FIELDS = ("content",)
    EDITABLE_FIELDS = frozenset(
        {"title", "description", "content", "duration", "thumbnail_url"}
    )
    COLUMNS = (
        *WORKFLOW_COLUMNS,
        "description",
        "content",
        "duration",
        "thumbnail_url",
    )
    JSON_COLUMNS: ClassVar[dict[str, Any]] = {"content": None}

    def __init__(
        self,
        description: str | None = None,
        content: dict[str, Any] | None = None,
        duration: int | None = None,
        thumbnail_url: str | None = None,
        lesson_ids: list[UUID] | None = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.description = description
        self.content = content or {"blocks": []}
        self.duration = duration
        self.thumbnail_url = thumbnail_url
        self.lesson_ids = list(lesson_ids or [])

    @classmethod
    def from_row(cls, row: Any) -> "Module":
        return cls(**cls.row_kwargs(row), lesson_ids=getattr(row, "lesson_ids", None))

    def has_content(self) -> bool:
        return document_has_blocks(self.content)

    def validate(self) -> None:
        super().validate()
        self.content = parse_document(self.content)
        _require_non_negative(duration=self.duration)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.workflow_dict(),
            "description": self.description,
            "content": self.content,
            "duration": self.duration,
            "thumbnail_url": self.thumbnail_url,
            "lesson_ids": self.lesson_ids,
        }


class Material(CassandraRowMixin, ContentEntity):
    """Uploaded course file (PDF, video, audio, note)."""

    kind = ContentKind.MATERIAL
    TABLE = "materials"
    PAYLOAD_FIELDS = ("file_url", "file_name", "file_size", "material_type")
    EDITABLE_FIELDS = frozenset(
        {
            "title",
            "description",
            "material_type",
            "category",
            "file_url",
            "file_name",
            "file_size",
            "preview_duration",
        }
    )
    COLUMNS = (
        *WORKFLOW_COLUMNS,
        "description",
        "material_type",
        "category",
        "file_url",
        "file_name",
        "file_size",
        "preview_duration",
    )

    def __init__(
        self,
        description: str | None = None,
        material_type: MaterialType | str = MaterialType.PDF,
        category: MaterialCategory | str | None = None,
        file_url: str | None = None,
        file_name: str | None = None,
        file_size: int | None = None,
        preview_duration: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.description = description
        self.material_type = MaterialType(material_type)
        self.category = MaterialCategory(
            category or CATEGORY_BY_TYPE[self.material_type]
        )
        self.file_url = file_url
        self.file_name = file_name
        self.file_size = file_size or 0
        self.preview_duration = preview_duration or 0

    def has_content(self) -> bool:
        return bool(self.file_url)

    def validate(self) -> None:
        super().validate()
        try:
            self.material_type = MaterialType(self.material_type)
            self.category = MaterialCategory(self.category)
        except ValueError as e:
            raise ValidationFailedError(str(e)) from e
        _require_non_negative(
            file_size=self.file_size, preview_duration=self.preview_duration
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.workflow_dict(),
            "description": self.description,
            "material_type": self.material_type.value,
            "category": self.category.value,
            "file_url": self.file_url,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "preview_duration": self.preview_duration,
        }


class Exam(CassandraRowMixin, ContentEntity):
    """Course exam with typed multiple-choice questions.

    ``activation_threshold`` is the course percent a student needs before
    the exam opens.
    """

    kind = ContentKind.EXAM
    TABLE = "exams"
    PAYLOAD_FIELDS = ("questions",)
    EDITABLE_FIELDS = frozenset(
        {
            "title",
            "description",
            "duration",
            "passing_score",
            "activation_threshold",
            "questions",
        }
    )
    COLUMNS = (
        *WORKFLOW_COLUMNS,
        "description",
        "duration",
        "passing_score",
        "activation_threshold",
        "questions",
    )
    JSON_COLUMNS: ClassVar[dict[str, Any]] = {"questions": []}

    def __init__(
        self,
        description: str | None = None,
        duration: int | None = None,
        passing_score: int = 70,
        activation_threshold: int = 0,
        questions: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.description = description
        self.duration = duration or 0
        self.passing_score = passing_score if passing_score is not None else 70
        self.activation_threshold = activation_threshold or 0
        self.questions = questions or []

    def has_content(self) -> bool:
        return bool(self.questions)

    def validate(self) -> None:
        super().validate()
        self.questions = parse_questions(self.questions)
        _require_non_negative(duration=self.duration)
        for name in ("passing_score", "activation_threshold"):
            if not 0 <= getattr(self, name) <= 100:
                raise ValidationFailedError(f"{name} must be between 0 and 100")

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.workflow_dict(),
            "description": self.description,
            "duration": self.duration,
            "passing_score": self.passing_score,
            "activation_threshold": self.activation_threshold,
            "questions": self.questions,
        }


ENTITY_CLASSES: dict[ContentKind, type[ContentEntity]] = {
    ContentKind.LESSON: Lesson,
    ContentKind.MODULE: Module,
    ContentKind.MATERIAL: Material,
    ContentKind.EXAM: Exam,
}


def _require_non_negative(**values: int | None) -> None:
    for name, value in values.items():
        if value is not None and value < 0:
            raise ValidationFailedError(f"{name} must not be negative")
