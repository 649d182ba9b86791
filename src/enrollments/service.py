"""Enrollment ledger service layer.

Business logic for:
- Enrolling a student (one active enrollment per student and course)
- Enrollment checks used for access control
- Withdrawing from or completing a course
- Progress percent snapshots written by the progress aggregator
"""

import asyncio
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.core.exceptions import ConflictError, NotFoundError, ValidationFailedError
from src.courses.models import Course
from src.enrollments.models import Enrollment, EnrollmentStatus
from src.utils.time import utcnow


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.courses.service import CourseService

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class AlreadyEnrolledError(ConflictError):
    """Student already has an active enrollment in the course."""

    def __init__(self, message: str = "Already enrolled in this course"):
        super().__init__(message, "already_enrolled")


class NotEnrolledError(NotFoundError):
    """No active enrollment for the student and course."""

    def __init__(self, message: str = "Not enrolled in this course"):
        super().__init__(message, "not_enrolled")


# ==============================================================================
# Enrollment Service
# ==============================================================================


class EnrollmentService:
    """Service for the enrollment ledger."""

    def __init__(self, session: "Session", keyspace: str, course_service: "CourseService"):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.course_service = course_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace

        self._claim_active = self.session.prepare(f"""
            INSERT INTO {ks}.active_enrollments (student_id, course_id, enrollment_id)
            VALUES (?, ?, ?) IF NOT EXISTS
        """)
        self._get_active = self.session.prepare(f"""
            SELECT enrollment_id FROM {ks}.active_enrollments
            WHERE student_id = ? AND course_id = ?
        """)
        self._release_active = self.session.prepare(f"""
            DELETE FROM {ks}.active_enrollments WHERE student_id = ? AND course_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments
            (id, student_id, course_id, status, enrolled_at, completed_at,
             is_completed, percent_complete, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._get_enrollment = self.session.prepare(
            f"SELECT * FROM {ks}.enrollments WHERE id = ?"
        )
        self._update_status = self.session.prepare(f"""
            UPDATE {ks}.enrollments SET status = ?, completed_at = ?, updated_at = ?
            WHERE id = ?
        """)
        self._update_percent = self.session.prepare(f"""
            UPDATE {ks}.enrollments
            SET percent_complete = ?, is_completed = ?, updated_at = ?
            WHERE id = ?
        """)

        self._insert_by_user = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments_by_user
            (student_id, enrolled_at, enrollment_id, course_id)
            VALUES (?, ?, ?, ?)
        """)
        self._list_by_user = self.session.prepare(f"""
            SELECT enrollment_id FROM {ks}.enrollments_by_user WHERE student_id = ?
        """)

        self._add_course = self.session.prepare(f"""
            UPDATE {ks}.enrolled_courses_by_user
            SET course_ids = course_ids + ? WHERE student_id = ?
        """)
        self._remove_course = self.session.prepare(f"""
            UPDATE {ks}.enrolled_courses_by_user
            SET course_ids = course_ids - ? WHERE student_id = ?
        """)

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(self, student_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll a student in a course.

        Raises:
            CourseNotFoundError: If the course does not exist
            AlreadyEnrolledError: If an active enrollment exists
        """
        await self.course_service.require_course(course_id)

        enrollment = Enrollment(student_id=student_id, course_id=course_id)
        claim = await self.session.aexecute(
            self._claim_active, [student_id, course_id, enrollment.id]
        )
        if not claim.was_applied:
            raise AlreadyEnrolledError

        await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.id,
                enrollment.student_id,
                enrollment.course_id,
                enrollment.status.value,
                enrollment.enrolled_at,
                enrollment.completed_at,
                enrollment.is_completed,
                enrollment.percent_complete,
                enrollment.updated_at,
            ],
        )
        await self.session.aexecute(
            self._insert_by_user,
            [student_id, enrollment.enrolled_at, enrollment.id, course_id],
        )
        await self.session.aexecute(self._add_course, [{course_id}, student_id])

        logger.info(
            "user_enrolled",
            student_id=str(student_id),
            course_id=str(course_id),
            enrollment_id=str(enrollment.id),
        )
        return enrollment

    async def get_enrollment(self, enrollment_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get_enrollment, [enrollment_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def get_active(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        """Active enrollment for the pair, if any."""
        result = await self.session.aexecute(self._get_active, [student_id, course_id])
        row = result.one()
        if row is None:
            return None
        return await self.get_enrollment(row.enrollment_id)

    async def is_enrolled(self, student_id: UUID, course_id: UUID) -> bool:
        result = await self.session.aexecute(self._get_active, [student_id, course_id])
        return result.one() is not None

    async def list_for_student(
        self, student_id: UUID
    ) -> list[tuple[Enrollment, Course | None]]:
        """Enrollments of a student, most recent first, with their courses."""
        rows = await self.session.aexecute(self._list_by_user, [student_id])
        loaded = await asyncio.gather(
            *(self.get_enrollment(row.enrollment_id) for row in rows)
        )
        enrollments = [e for e in loaded if e is not None]
        courses = await asyncio.gather(
            *(self.course_service.get_course(e.course_id) for e in enrollments)
        )
        return list(zip(enrollments, courses, strict=True))

    async def set_status(
        self, student_id: UUID, course_id: UUID, status: EnrollmentStatus
    ) -> Enrollment:
        """Withdraw from or complete the active enrollment.

        The active lock is released, so the student can enroll again.

        Raises:
            ValidationFailedError: If ``status`` is active
            NotEnrolledError: If there is no active enrollment
        """
        if status == EnrollmentStatus.ACTIVE:
            raise ValidationFailedError(
                "Enrollment can only be withdrawn or completed", "invalid_status"
            )

        enrollment = await self.get_active(student_id, course_id)
        if enrollment is None:
            raise NotEnrolledError

        now = utcnow()
        enrollment.status = status
        enrollment.updated_at = now
        if status == EnrollmentStatus.COMPLETED:
            enrollment.completed_at = now

        await self.session.aexecute(
            self._update_status,
            [status.value, enrollment.completed_at, now, enrollment.id],
        )
        await self.session.aexecute(self._release_active, [student_id, course_id])
        if status == EnrollmentStatus.WITHDRAWN:
            await self.session.aexecute(self._remove_course, [{course_id}, student_id])

        logger.info(
            "enrollment_status_changed",
            student_id=str(student_id),
            course_id=str(course_id),
            status=status.value,
        )
        return enrollment

    async def update_progress_snapshot(
        self, student_id: UUID, course_id: UUID, percent: int
    ) -> Enrollment | None:
        """Copy the course percent onto the active enrollment, if there is one."""
        enrollment = await self.get_active(student_id, course_id)
        if enrollment is None:
            return None

        enrollment.percent_complete = percent
        enrollment.is_completed = enrollment.is_completed or percent >= 100
        enrollment.updated_at = utcnow()
        await self.session.aexecute(
            self._update_percent,
            [
                enrollment.percent_complete,
                enrollment.is_completed,
                enrollment.updated_at,
                enrollment.id,
            ],
        )
        return enrollment
