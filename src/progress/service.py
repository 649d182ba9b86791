"""Student progress service layer.

Business logic for:
- Accumulating time spent per module
- Completing modules once the time threshold is reached
- Course percent recomputation and next-module hints
"""

from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from src.config.settings import Settings
from src.core.exceptions import ValidationFailedError
from src.enrollments.service import NotEnrolledError
from src.progress.models import (
    ModuleProgress,
    ProgressRecord,
    completion_threshold_seconds,
    compute_percent,
    next_module_after,
)
from src.utils.time import utcnow
from src.workflow.engine import ContentNotFoundError
from src.workflow.models import ApprovalStatus, ContentKind


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.content.stores import ExamStore, ModuleStore
    from src.enrollments.service import EnrollmentService

logger = structlog.get_logger(__name__)


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for per-module time and course completion."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        settings: Settings,
        module_store: "ModuleStore",
        enrollment_service: "EnrollmentService",
        exam_store: "ExamStore",
    ):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.module_store = module_store
        self.enrollment_service = enrollment_service
        self.exam_store = exam_store
        self.default_duration = settings.progress_default_module_duration_minutes
        self.completion_ratio = settings.progress_completion_ratio
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace

        # Progress record
        self._create_record = self.session.prepare(f"""
            INSERT INTO {ks}.progress_records
            (student_id, course_id, percent_complete, created_at, last_accessed)
            VALUES (?, ?, 0, ?, ?) IF NOT EXISTS
        """)
        self._get_record = self.session.prepare(f"""
            SELECT * FROM {ks}.progress_records WHERE student_id = ? AND course_id = ?
        """)
        self._add_completed_module = self.session.prepare(f"""
            UPDATE {ks}.progress_records SET completed_module_ids = completed_module_ids + ?
            WHERE student_id = ? AND course_id = ?
        """)
        self._update_percent = self.session.prepare(f"""
            UPDATE {ks}.progress_records SET percent_complete = ?, last_accessed = ?
            WHERE student_id = ? AND course_id = ?
        """)

        # Time spent
        self._add_time = self.session.prepare(f"""
            UPDATE {ks}.module_time_spent SET seconds = seconds + ?
            WHERE student_id = ? AND course_id = ? AND module_id = ?
        """)
        self._get_time = self.session.prepare(f"""
            SELECT seconds FROM {ks}.module_time_spent
            WHERE student_id = ? AND course_id = ? AND module_id = ?
        """)
        self._list_time = self.session.prepare(f"""
            SELECT module_id, seconds FROM {ks}.module_time_spent
            WHERE student_id = ? AND course_id = ?
        """)

        # Module completion
        self._get_module_progress = self.session.prepare(f"""
            SELECT * FROM {ks}.module_progress
            WHERE student_id = ? AND course_id = ? AND module_id = ?
        """)
        self._list_module_progress = self.session.prepare(f"""
            SELECT * FROM {ks}.module_progress WHERE student_id = ? AND course_id = ?
        """)
        self._complete_module = self.session.prepare(f"""
            UPDATE {ks}.module_progress SET completed = true, completed_at = ?, last_updated = ?
            WHERE student_id = ? AND course_id = ? AND module_id = ?
        """)
        self._touch_module = self.session.prepare(f"""
            UPDATE {ks}.module_progress SET last_updated = ?
            WHERE student_id = ? AND course_id = ? AND module_id = ?
        """)

        # Approved modules in position order
        self._list_approved_modules = self.session.prepare(f"""
            SELECT position, module_id FROM {ks}.approved_modules_by_course
            WHERE course_id = ?
        """)

    # ==========================================================================
    # Time Updates
    # ==========================================================================

    async def record_time(
        self, student_id: UUID, course_id: UUID, module_id: UUID, seconds: int
    ) -> dict[str, Any]:
        """Add time spent on a module and recompute course progress.

        Calls accumulate; repeating a call adds the time again.

        Returns:
            Dict with module_completed, percent_complete, next_module_id and
            time_spent_seconds.

        Raises:
            ValidationFailedError: If ``seconds`` is not positive
            NotEnrolledError: If the student has no active enrollment
            ContentNotFoundError: If the module is not in the course
        """
        if seconds <= 0:
            raise ValidationFailedError("seconds must be positive", "invalid_seconds")
        if not await self.enrollment_service.is_enrolled(student_id, course_id):
            raise NotEnrolledError
        module = await self.module_store.get(module_id)
        if module is None or module.course_id != course_id:
            raise ContentNotFoundError(ContentKind.MODULE)

        now = utcnow()
        key = [student_id, course_id, module_id]

        # Concurrent first writers race on IF NOT EXISTS; exactly one creates.
        await self.session.aexecute(
            self._create_record, [student_id, course_id, now, now]
        )
        await self.session.aexecute(self._add_time, [seconds, *key])

        result = await self.session.aexecute(self._get_time, key)
        row = result.one()
        time_spent = row.seconds if row else seconds

        result = await self.session.aexecute(self._get_module_progress, key)
        progress_row = result.one()
        already_completed = bool(progress_row and progress_row.completed)

        threshold = completion_threshold_seconds(
            module.duration, self.default_duration, self.completion_ratio
        )
        newly_completed = not already_completed and time_spent >= threshold
        if newly_completed:
            await self.session.aexecute(self._complete_module, [now, now, *key])
            await self.session.aexecute(
                self._add_completed_module, [{module_id}, student_id, course_id]
            )
        else:
            await self.session.aexecute(self._touch_module, [now, *key])

        approved_rows = await self.session.aexecute(
            self._list_approved_modules, [course_id]
        )
        approved = [(r.position, r.module_id) for r in approved_rows]

        result = await self.session.aexecute(self._get_record, [student_id, course_id])
        record = ProgressRecord.from_row(result.one())

        percent = compute_percent(
            record.completed_module_ids, [module_id for _, module_id in approved]
        )
        if percent is None:
            percent = record.percent_complete

        next_module_id = None
        if newly_completed:
            next_module_id = next_module_after(approved, module_id, module.position)

        await self.session.aexecute(
            self._update_percent, [percent, now, student_id, course_id]
        )
        await self.enrollment_service.update_progress_snapshot(
            student_id, course_id, percent
        )

        logger.info(
            "progress_recorded",
            student_id=str(student_id),
            course_id=str(course_id),
            module_id=str(module_id),
            seconds=seconds,
            time_spent=time_spent,
            module_completed=newly_completed,
            percent_complete=percent,
        )
        return {
            "module_completed": already_completed or newly_completed,
            "percent_complete": percent,
            "next_module_id": next_module_id,
            "time_spent_seconds": time_spent,
        }

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_course_progress(
        self, student_id: UUID, course_id: UUID
    ) -> ProgressRecord:
        """Course progress with per-module entries; empty when never started."""
        result = await self.session.aexecute(self._get_record, [student_id, course_id])
        row = result.one()
        if row is None:
            return ProgressRecord(student_id=student_id, course_id=course_id)

        record = ProgressRecord.from_row(row)
        time_rows = await self.session.aexecute(self._list_time, [student_id, course_id])
        progress_rows = await self.session.aexecute(
            self._list_module_progress, [student_id, course_id]
        )

        modules: dict[UUID, ModuleProgress] = {
            r.module_id: ModuleProgress(r.module_id, time_spent_seconds=r.seconds)
            for r in time_rows
        }
        for r in progress_rows:
            entry = modules.setdefault(r.module_id, ModuleProgress(r.module_id))
            entry.completed = bool(r.completed)
            entry.completed_at = r.completed_at
            entry.last_updated = r.last_updated

        record.modules = list(modules.values())
        return record

    async def check_exam_eligibility(
        self, student_id: UUID, course_id: UUID
    ) -> dict[str, Any]:
        """Approved exams of a course and whether each is open to the student.

        An exam opens once the student's course percent reaches its
        ``activation_threshold``.

        Raises:
            NotEnrolledError: If the student has no active enrollment
        """
        if not await self.enrollment_service.is_enrolled(student_id, course_id):
            raise NotEnrolledError

        result = await self.session.aexecute(self._get_record, [student_id, course_id])
        row = result.one()
        percent = (row.percent_complete or 0) if row else 0

        exams = await self.exam_store.list_by_course(course_id)
        approved = sorted(
            (e for e in exams if e.approval_status == ApprovalStatus.APPROVED),
            key=lambda e: e.created_at,
        )
        return {
            "course_id": course_id,
            "percent_complete": percent,
            "exams": [
                {
                    "exam_id": exam.id,
                    "title": exam.title,
                    "passing_score": exam.passing_score,
                    "activation_threshold": exam.activation_threshold,
                    "eligible": percent >= exam.activation_threshold,
                }
                for exam in approved
            ],
        }
