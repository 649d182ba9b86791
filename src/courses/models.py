"""Database models for courses.

Cassandra table definitions for:
- courses: course record with its ordered module id list
- course_counters: denormalized content totals (counter columns)
"""

import re
import unicodedata
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from src.utils.time import ensure_utc_aware, utcnow


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    slug TEXT,
    description TEXT,
    thumbnail_url TEXT,
    owner_id UUID,
    module_ids LIST<UUID>,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

COURSE_SLUG_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS courses_slug_idx ON {keyspace}.courses (slug)
"""

# Counter columns must live in a table of their own
COURSE_COUNTERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_counters (
    course_id UUID PRIMARY KEY,
    total_modules COUNTER,
    total_lessons COUNTER,
    total_materials COUNTER,
    total_exams COUNTER
)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    COURSE_SLUG_INDEX_CQL,
    COURSE_COUNTERS_TABLE_CQL,
]

# content_by_course kind -> counter column
COUNTER_COLUMNS: dict[str, str] = {
    "module": "total_modules",
    "lesson": "total_lessons",
    "material": "total_materials",
    "exam": "total_exams",
}


# ==============================================================================
# Helper Functions
# ==============================================================================


def generate_slug(title: str) -> str:
    """Generate URL-friendly slug from title."""
    slug = unicodedata.normalize("NFKD", title)
    slug = slug.encode("ascii", "ignore").decode("ascii")
    slug = slug.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    return re.sub(r"[-\s]+", "-", slug)


# ==============================================================================
# Entity Classes
# ==============================================================================


class Course:
    """Course: the parent of modules, lessons, materials and exams.

    Attributes:
        id: Unique identifier (UUID)
        title: Course title
        slug: URL-friendly identifier
        description: Course description
        thumbnail_url: Cover image URL
        owner_id: Staff member who created the course
        module_ids: Module ids in creation order
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: UUID | None = None,
        title: str = "",
        slug: str | None = None,
        description: str | None = None,
        thumbnail_url: str | None = None,
        owner_id: UUID | None = None,
        module_ids: list[UUID] | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.title = title.strip()
        self.slug = slug or generate_slug(title)
        self.description = description
        self.thumbnail_url = thumbnail_url
        self.owner_id = owner_id
        self.module_ids = list(module_ids or [])
        self.created_at = ensure_utc_aware(created_at) or utcnow()
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_row(cls, row: Any) -> "Course":
        """Create Course instance from Cassandra row."""
        return cls(
            id=row.id,
            title=row.title,
            slug=row.slug,
            description=row.description,
            thumbnail_url=row.thumbnail_url,
            owner_id=row.owner_id,
            module_ids=row.module_ids,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "thumbnail_url": self.thumbnail_url,
            "owner_id": self.owner_id,
            "module_ids": self.module_ids,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Course {self.title}>"


class CourseCounters:
    """Denormalized totals of a course's content."""

    def __init__(
        self,
        course_id: UUID,
        total_modules: int | None = 0,
        total_lessons: int | None = 0,
        total_materials: int | None = 0,
        total_exams: int | None = 0,
    ):
        self.course_id = course_id
        self.total_modules = total_modules or 0
        self.total_lessons = total_lessons or 0
        self.total_materials = total_materials or 0
        self.total_exams = total_exams or 0

    @classmethod
    def from_row(cls, course_id: UUID, row: Any | None) -> "CourseCounters":
        if row is None:
            return cls(course_id)
        return cls(
            course_id=course_id,
            **{column: getattr(row, column, 0) for column in COUNTER_COLUMNS.values()},
        )

    def to_dict(self) -> dict[str, int]:
        return {column: getattr(self, column) for column in COUNTER_COLUMNS.values()}

    def __repr__(self) -> str:
        return f"<CourseCounters {self.course_id} {self.to_dict()}>"
