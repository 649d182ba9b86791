"""Course registry service layer.

Business logic for:
- Course creation and lookup
- Denormalized content counters and their reconciliation
"""

from collections import Counter
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from src.core.exceptions import NotFoundError
from src.courses.models import COUNTER_COLUMNS, Course, CourseCounters, generate_slug
from src.courses.schemas import CreateCourseRequest


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseNotFoundError(NotFoundError):
    """Course not found."""

    def __init__(self, message: str = "Course not found"):
        super().__init__(message, "course_not_found")


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for courses and their counters."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {ks}.courses WHERE id = ?"
        )
        self._get_course_by_slug = self.session.prepare(
            f"SELECT * FROM {ks}.courses WHERE slug = ?"
        )
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {ks}.courses
            (id, title, slug, description, thumbnail_url, owner_id,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._list_courses = self.session.prepare(
            f"SELECT * FROM {ks}.courses LIMIT ?"
        )
        self._get_counters = self.session.prepare(
            f"SELECT * FROM {ks}.course_counters WHERE course_id = ?"
        )
        self._list_course_content_kinds = self.session.prepare(
            f"SELECT kind FROM {ks}.content_by_course WHERE course_id = ?"
        )
        self._adjust_counter = {
            column: self.session.prepare(
                f"UPDATE {ks}.course_counters SET {column} = {column} + ? "
                f"WHERE course_id = ?"
            )
            for column in COUNTER_COLUMNS.values()
        }

    async def create_course(self, data: CreateCourseRequest, owner_id: UUID) -> Course:
        """Create a new course."""
        base_slug = generate_slug(data.title)
        slug = base_slug
        while await self.get_course_by_slug(slug):
            slug = f"{base_slug}-{uuid4().hex[:8]}"

        course = Course(
            title=data.title,
            slug=slug,
            description=data.description,
            thumbnail_url=data.thumbnail_url,
            owner_id=owner_id,
        )
        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.title,
                course.slug,
                course.description,
                course.thumbnail_url,
                course.owner_id,
                course.created_at,
                course.updated_at,
            ],
        )
        logger.info("course_created", course_id=str(course.id), slug=course.slug)
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def require_course(self, course_id: UUID) -> Course:
        """Get course by ID.

        Raises:
            CourseNotFoundError: If the course does not exist
        """
        course = await self.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def get_course_by_slug(self, slug: str) -> Course | None:
        result = await self.session.aexecute(self._get_course_by_slug, [slug])
        row = result.one()
        return Course.from_row(row) if row else None

    async def list_courses(self, limit: int = 50) -> list[Course]:
        """List courses (full scan, bounded by ``limit``)."""
        rows = await self.session.aexecute(self._list_courses, [limit])
        courses = [Course.from_row(row) for row in rows]
        return sorted(courses, key=lambda c: c.created_at, reverse=True)

    async def get_counters(self, course_id: UUID) -> CourseCounters:
        result = await self.session.aexecute(self._get_counters, [course_id])
        return CourseCounters.from_row(course_id, result.one())

    async def count_content(self, course_id: UUID) -> dict[str, int]:
        """Actual content totals from the course lookup table."""
        rows = await self.session.aexecute(self._list_course_content_kinds, [course_id])
        by_kind = Counter(row.kind for row in rows)
        return {column: by_kind.get(kind, 0) for kind, column in COUNTER_COLUMNS.items()}

    async def recount(self, course_id: UUID) -> CourseCounters:
        """Bring the counters back in line with the stored content.

        Counter columns cannot be assigned, so each one is moved by the
        difference between the real total and the stored value.

        Raises:
            CourseNotFoundError: If the course does not exist
        """
        await self.require_course(course_id)

        actual = await self.count_content(course_id)
        current = await self.get_counters(course_id)

        deltas = {}
        for column, total in actual.items():
            delta = total - getattr(current, column)
            if delta:
                await self.session.aexecute(
                    self._adjust_counter[column], [delta, course_id]
                )
                deltas[column] = delta

        if deltas:
            logger.warning(
                "course_counters_reconciled", course_id=str(course_id), deltas=deltas
            )
        else:
            logger.info("course_counters_consistent", course_id=str(course_id))

        return CourseCounters(course_id, **actual)
