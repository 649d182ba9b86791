"""Database models for student progress.

Cassandra table definitions for:
- progress_records: one row per (student, course), created with IF NOT EXISTS
- module_progress: completion flag per module (never reverts)
- module_time_spent: accumulated seconds per module (counter column)
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from src.utils.time import ensure_utc_aware, utcnow


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PROGRESS_RECORDS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.progress_records (
    student_id UUID,
    course_id UUID,
    percent_complete INT,
    completed_module_ids SET<UUID>,
    last_accessed TIMESTAMP,
    created_at TIMESTAMP,
    PRIMARY KEY ((student_id, course_id))
)
"""

MODULE_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.module_progress (
    student_id UUID,
    course_id UUID,
    module_id UUID,
    completed BOOLEAN,
    completed_at TIMESTAMP,
    last_updated TIMESTAMP,
    PRIMARY KEY ((student_id, course_id), module_id)
)
"""

# Counter columns must live in a table of their own
MODULE_TIME_SPENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.module_time_spent (
    student_id UUID,
    course_id UUID,
    module_id UUID,
    seconds COUNTER,
    PRIMARY KEY ((student_id, course_id), module_id)
)
"""

PROGRESS_TABLES_CQL = [
    PROGRESS_RECORDS_TABLE_CQL,
    MODULE_PROGRESS_TABLE_CQL,
    MODULE_TIME_SPENT_TABLE_CQL,
]


# ==============================================================================
# Calculations
# ==============================================================================

DEFAULT_MODULE_DURATION_MINUTES = 10
COMPLETION_RATIO = 0.8


def completion_threshold_seconds(
    duration_minutes: int | None,
    default_minutes: int = DEFAULT_MODULE_DURATION_MINUTES,
    ratio: float = COMPLETION_RATIO,
) -> float:
    """Seconds a student must spend on a module to complete it."""
    minutes = duration_minutes or default_minutes
    return minutes * 60 * ratio


def compute_percent(completed: set[UUID], approved: list[UUID]) -> int | None:
    """Percent of approved modules completed.

    Completed ids no longer approved are ignored. Returns None when the
    course has no approved modules.
    """
    if not approved:
        return None
    done = len(completed & set(approved))
    return int(100 * done / len(approved) + 0.5)


def next_module_after(
    approved: list[tuple[int, UUID]], module_id: UUID, position: int | None
) -> UUID | None:
    """First approved module positioned after ``module_id``."""
    ordered = sorted(approved)
    if position is None:
        ids = [mid for _, mid in ordered]
        if module_id not in ids:
            return None
        index = ids.index(module_id)
        return ids[index + 1] if index + 1 < len(ids) else None
    for pos, mid in ordered:
        if pos > position:
            return mid
    return None


# ==============================================================================
# Entity Classes
# ==============================================================================


class ModuleProgress:
    """Progress of one student on one module.

    Attributes:
        module_id: Module UUID
        time_spent_seconds: Accumulated time (counter)
        completed: True once time reached the threshold; never reverts
        completed_at: When the module was completed
        last_updated: Last time update
    """

    def __init__(
        self,
        module_id: UUID,
        time_spent_seconds: int = 0,
        completed: bool | None = False,
        completed_at: datetime | None = None,
        last_updated: datetime | None = None,
    ):
        self.module_id = module_id
        self.time_spent_seconds = time_spent_seconds or 0
        self.completed = bool(completed)
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_updated = ensure_utc_aware(last_updated)

    def to_dict(self) -> dict[str, Any]:
        return {
            "module_id": self.module_id,
            "time_spent_seconds": self.time_spent_seconds,
            "completed": self.completed,
            "completed_at": self.completed_at,
            "last_updated": self.last_updated,
        }

    def __repr__(self) -> str:
        return f"<ModuleProgress {self.module_id} {self.time_spent_seconds}s>"


class ProgressRecord:
    """Progress of one student in one course."""

    def __init__(
        self,
        student_id: UUID,
        course_id: UUID,
        percent_complete: int | None = 0,
        completed_module_ids: set[UUID] | None = None,
        last_accessed: datetime | None = None,
        created_at: datetime | None = None,
        modules: list[ModuleProgress] | None = None,
    ):
        self.student_id = student_id
        self.course_id = course_id
        self.percent_complete = percent_complete or 0
        self.completed_module_ids = set(completed_module_ids or ())
        self.last_accessed = ensure_utc_aware(last_accessed)
        self.created_at = ensure_utc_aware(created_at) or utcnow()
        self.modules = modules or []

    @classmethod
    def from_row(cls, row: Any) -> "ProgressRecord":
        """Create ProgressRecord instance from Cassandra row."""
        return cls(
            student_id=row.student_id,
            course_id=row.course_id,
            percent_complete=row.percent_complete,
            completed_module_ids=row.completed_module_ids,
            last_accessed=row.last_accessed,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "student_id": self.student_id,
            "course_id": self.course_id,
            "percent_complete": self.percent_complete,
            "completed_module_ids": sorted(self.completed_module_ids, key=str),
            "last_accessed": self.last_accessed,
            "created_at": self.created_at,
            "modules": [m.to_dict() for m in self.modules],
        }

    def __repr__(self) -> str:
        return f"<ProgressRecord {self.student_id} {self.course_id} {self.percent_complete}%>"
