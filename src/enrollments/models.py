"""Database models for course enrollments.

Cassandra table definitions for:
- enrollments: one row per enrollment
- enrollments_by_user: student lookup, most recent first
- active_enrollments: one row per (student, course) while active; claimed
  with IF NOT EXISTS so a pair never has two active enrollments
- enrolled_courses_by_user: denormalized set of enrolled course ids
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from src.utils.time import ensure_utc_aware, utcnow


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ACTIVE = "active"
    WITHDRAWN = "withdrawn"
    COMPLETED = "completed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    id UUID PRIMARY KEY,
    student_id UUID,
    course_id UUID,
    status TEXT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    is_completed BOOLEAN,
    percent_complete INT,
    updated_at TIMESTAMP
)
"""

ENROLLMENTS_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_user (
    student_id UUID,
    enrolled_at TIMESTAMP,
    enrollment_id UUID,
    course_id UUID,
    PRIMARY KEY (student_id, enrolled_at, enrollment_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, enrollment_id ASC)
"""

ACTIVE_ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.active_enrollments (
    student_id UUID,
    course_id UUID,
    enrollment_id UUID,
    PRIMARY KEY (student_id, course_id)
)
"""

ENROLLED_COURSES_BY_USER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrolled_courses_by_user (
    student_id UUID PRIMARY KEY,
    course_ids SET<UUID>
)
"""

ENROLLMENTS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_USER_TABLE_CQL,
    ACTIVE_ENROLLMENTS_TABLE_CQL,
    ENROLLED_COURSES_BY_USER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Student-to-course enrollment.

    Attributes:
        id: Enrollment UUID
        student_id: Enrolled student
        course_id: Course UUID
        status: active, withdrawn or completed
        enrolled_at: Enrollment timestamp
        completed_at: Set when the enrollment is marked completed
        is_completed: Course progress reached 100%
        percent_complete: Snapshot of course progress (0-100)
    """

    def __init__(
        self,
        student_id: UUID,
        course_id: UUID,
        id: UUID | None = None,
        status: EnrollmentStatus | str = EnrollmentStatus.ACTIVE,
        enrolled_at: datetime | None = None,
        completed_at: datetime | None = None,
        is_completed: bool | None = False,
        percent_complete: int | None = 0,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.student_id = student_id
        self.course_id = course_id
        self.status = EnrollmentStatus(status)
        self.enrolled_at = ensure_utc_aware(enrolled_at) or utcnow()
        self.completed_at = ensure_utc_aware(completed_at)
        self.is_completed = bool(is_completed)
        self.percent_complete = percent_complete or 0
        self.updated_at = ensure_utc_aware(updated_at)

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            id=row.id,
            student_id=row.student_id,
            course_id=row.course_id,
            status=row.status or EnrollmentStatus.ACTIVE,
            enrolled_at=row.enrolled_at,
            completed_at=row.completed_at,
            is_completed=row.is_completed,
            percent_complete=row.percent_complete,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "course_id": self.course_id,
            "status": self.status.value,
            "enrolled_at": self.enrolled_at,
            "completed_at": self.completed_at,
            "is_completed": self.is_completed,
            "percent_complete": self.percent_complete,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment student={self.student_id} course={self.course_id} "
            f"{self.status.value} {self.percent_complete}%>"
        )
