"""Cassandra stores for each content kind.

Each store implements ``ContentKindStore`` for the approval workflow and adds
the read queries the content service needs. Parent bookkeeping uses atomic
Cassandra operations only:

- course totals are counter columns in ``course_counters``
- child lists use ``list + [id]`` / ``list - [id]`` updates
- ordering positions are claimed with ``INSERT ... IF NOT EXISTS``
"""

import asyncio
from typing import TYPE_CHECKING, Any, ClassVar
from uuid import UUID

import structlog

from src.content.models import Exam, Lesson, Material, Module
from src.core.exceptions import ConflictError
from src.workflow.models import ApprovalStatus, ContentEntity
from src.workflow.strategy import ContentKindStore


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

DEFAULT_POSITION_CLAIM_RETRIES = 5


class PositionContentionError(ConflictError):
    """Every claim attempt hit a position taken by a concurrent create."""

    def __init__(self, message: str = "Could not assign a position, try again"):
        super().__init__(message, "position_contention")


class CassandraContentStore(ContentKindStore):
    """Full-row persistence plus owner, status and course lookups."""

    entity_cls: ClassVar[type[Any]]
    counter_column: ClassVar[str]

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        position_claim_retries: int = DEFAULT_POSITION_CLAIM_RETRIES,
    ):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.position_claim_retries = position_claim_retries
        self.kind = self.entity_cls.kind
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace
        table = self.entity_cls.TABLE
        columns = self.entity_cls.COLUMNS

        self._get_entity = self.session.prepare(
            f"SELECT * FROM {ks}.{table} WHERE id = ?"
        )
        self._upsert_entity = self.session.prepare(
            f"INSERT INTO {ks}.{table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        self._delete_entity = self.session.prepare(
            f"DELETE FROM {ks}.{table} WHERE id = ?"
        )

        # Lookups
        self._insert_by_owner = self.session.prepare(f"""
            INSERT INTO {ks}.content_by_owner (owner_id, kind, created_at, content_id)
            VALUES (?, ?, ?, ?)
        """)
        self._delete_by_owner = self.session.prepare(f"""
            DELETE FROM {ks}.content_by_owner
            WHERE owner_id = ? AND kind = ? AND created_at = ? AND content_id = ?
        """)
        self._list_by_owner = self.session.prepare(f"""
            SELECT content_id FROM {ks}.content_by_owner
            WHERE owner_id = ? AND kind = ? LIMIT ?
        """)
        self._insert_by_status = self.session.prepare(f"""
            INSERT INTO {ks}.content_by_status
            (kind, approval_status, created_at, content_id)
            VALUES (?, ?, ?, ?)
        """)
        self._delete_by_status = self.session.prepare(f"""
            DELETE FROM {ks}.content_by_status
            WHERE kind = ? AND approval_status = ? AND created_at = ? AND content_id = ?
        """)
        self._list_by_status = self.session.prepare(f"""
            SELECT content_id FROM {ks}.content_by_status
            WHERE kind = ? AND approval_status = ? LIMIT ?
        """)
        self._insert_by_course = self.session.prepare(f"""
            INSERT INTO {ks}.content_by_course (course_id, kind, created_at, content_id)
            VALUES (?, ?, ?, ?)
        """)
        self._delete_by_course = self.session.prepare(f"""
            DELETE FROM {ks}.content_by_course
            WHERE course_id = ? AND kind = ? AND created_at = ? AND content_id = ?
        """)
        self._list_by_course = self.session.prepare(f"""
            SELECT content_id FROM {ks}.content_by_course
            WHERE course_id = ? AND kind = ?
        """)

        # Parent counter
        col = self.counter_column
        self._add_to_counter = self.session.prepare(f"""
            UPDATE {ks}.course_counters SET {col} = {col} + ?
            WHERE course_id = ?
        """)

    # ==========================================================================
    # Workflow Strategy
    # ==========================================================================

    async def get(self, entity_id: UUID) -> ContentEntity | None:
        result = await self.session.aexecute(self._get_entity, [entity_id])
        row = result.one()
        return self.entity_cls.from_row(row) if row else None

    async def insert(self, entity: ContentEntity) -> None:
        await self.session.aexecute(self._upsert_entity, entity.to_row())
        await self.session.aexecute(
            self._insert_by_owner,
            [entity.owner_id, self.kind.value, entity.created_at, entity.id],
        )
        await self.session.aexecute(
            self._insert_by_status,
            [self.kind.value, entity.approval_status.value, entity.created_at, entity.id],
        )
        await self.session.aexecute(
            self._insert_by_course,
            [entity.course_id, self.kind.value, entity.created_at, entity.id],
        )

    async def save(self, entity: ContentEntity) -> None:
        await self.session.aexecute(self._upsert_entity, entity.to_row())

    async def remove(self, entity: ContentEntity) -> None:
        await self.session.aexecute(self._delete_entity, [entity.id])
        await self.session.aexecute(
            self._delete_by_owner,
            [entity.owner_id, self.kind.value, entity.created_at, entity.id],
        )
        await self.session.aexecute(
            self._delete_by_status,
            [self.kind.value, entity.approval_status.value, entity.created_at, entity.id],
        )
        await self.session.aexecute(
            self._delete_by_course,
            [entity.course_id, self.kind.value, entity.created_at, entity.id],
        )

    async def attach_to_parent(self, entity: ContentEntity) -> None:
        await self.session.aexecute(self._add_to_counter, [1, entity.course_id])

    async def detach_from_parent(self, entity: ContentEntity) -> None:
        await self.session.aexecute(self._add_to_counter, [-1, entity.course_id])

    async def on_status_change(
        self, entity: ContentEntity, previous: ApprovalStatus
    ) -> None:
        await self.session.aexecute(
            self._delete_by_status,
            [self.kind.value, previous.value, entity.created_at, entity.id],
        )
        await self.session.aexecute(
            self._insert_by_status,
            [self.kind.value, entity.approval_status.value, entity.created_at, entity.id],
        )

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_many(self, entity_ids: list[UUID]) -> list[ContentEntity]:
        """Load entities in the given order, skipping ids that no longer exist."""
        entities = await asyncio.gather(*(self.get(i) for i in entity_ids))
        return [entity for entity in entities if entity is not None]

    async def list_by_owner(self, owner_id: UUID, limit: int = 100) -> list[ContentEntity]:
        """Entities created by ``owner_id``, newest first."""
        rows = await self.session.aexecute(
            self._list_by_owner, [owner_id, self.kind.value, limit]
        )
        return await self.get_many([row.content_id for row in rows])

    async def list_by_status(
        self, status: ApprovalStatus, limit: int = 100
    ) -> list[ContentEntity]:
        """Entities in ``status``, newest first."""
        rows = await self.session.aexecute(
            self._list_by_status, [self.kind.value, status.value, limit]
        )
        return await self.get_many([row.content_id for row in rows])

    async def list_by_course(self, course_id: UUID) -> list[ContentEntity]:
        """Entities of this kind in a course, newest first."""
        rows = await self.session.aexecute(
            self._list_by_course, [course_id, self.kind.value]
        )
        return await self.get_many([row.content_id for row in rows])

    async def count_by_course(self, course_id: UUID) -> int:
        rows = await self.session.aexecute(
            self._list_by_course, [course_id, self.kind.value]
        )
        return sum(1 for _ in rows)


class OrderedContentStore(CassandraContentStore):
    """Store for kinds with a unique position under their parent."""

    ordering_table: ClassVar[str]
    parent_column: ClassVar[str]
    child_column: ClassVar[str]

    def _prepare_statements(self) -> None:
        super()._prepare_statements()
        ks = self.keyspace
        table = self.ordering_table
        parent = self.parent_column
        child = self.child_column

        self._max_position = self.session.prepare(f"""
            SELECT position FROM {ks}.{table}
            WHERE {parent} = ? ORDER BY position DESC LIMIT 1
        """)
        self._claim_position = self.session.prepare(f"""
            INSERT INTO {ks}.{table} ({parent}, position, {child})
            VALUES (?, ?, ?) IF NOT EXISTS
        """)
        self._release_position = self.session.prepare(f"""
            DELETE FROM {ks}.{table} WHERE {parent} = ? AND position = ?
        """)
        self._list_children = self.session.prepare(f"""
            SELECT position, {child} FROM {ks}.{table} WHERE {parent} = ?
        """)

    async def assign_position(self, entity: ContentEntity) -> int:
        """Claim max(position) + 1 under the parent, retrying on collision.

        Raises:
            PositionContentionError: If every attempt collided.
        """
        parent_id = entity.parent_id
        for attempt in range(1, self.position_claim_retries + 1):
            result = await self.session.aexecute(self._max_position, [parent_id])
            row = result.one()
            position = row.position + 1 if row else 0

            claim = await self.session.aexecute(
                self._claim_position, [parent_id, position, entity.id]
            )
            if claim.was_applied:
                return position

            logger.info(
                "position_claim_collision",
                kind=self.kind.value,
                parent_id=str(parent_id),
                position=position,
                attempt=attempt,
            )

        raise PositionContentionError

    async def remove(self, entity: ContentEntity) -> None:
        await super().remove(entity)
        if entity.position is not None:
            await self.session.aexecute(
                self._release_position, [entity.parent_id, entity.position]
            )

    async def list_children(self, parent_id: UUID) -> list[ContentEntity]:
        """Children of ``parent_id`` ordered by position."""
        rows = await self.session.aexecute(self._list_children, [parent_id])
        return await self.get_many([getattr(row, self.child_column) for row in rows])


class LessonStore(OrderedContentStore):
    """Lessons, ordered within their module."""

    entity_cls = Lesson
    counter_column = "total_lessons"
    ordering_table = "lessons_by_module"
    parent_column = "module_id"
    child_column = "lesson_id"

    def _prepare_statements(self) -> None:
        super()._prepare_statements()
        self._append_lesson_id = self.session.prepare(
            f"UPDATE {self.keyspace}.modules SET lesson_ids = lesson_ids + ? WHERE id = ?"
        )
        self._remove_lesson_id = self.session.prepare(
            f"UPDATE {self.keyspace}.modules SET lesson_ids = lesson_ids - ? WHERE id = ?"
        )

    async def attach_to_parent(self, entity: ContentEntity) -> None:
        await super().attach_to_parent(entity)
        await self.session.aexecute(self._append_lesson_id, [[entity.id], entity.parent_id])

    async def detach_from_parent(self, entity: ContentEntity) -> None:
        await super().detach_from_parent(entity)
        await self.session.aexecute(self._remove_lesson_id, [[entity.id], entity.parent_id])


class ModuleStore(OrderedContentStore):
    """Modules, ordered within their course.

    Also keeps ``approved_modules_by_course`` in step with approval state; the
    progress aggregator reads it to compute percentages and next modules.
    """

    entity_cls = Module
    counter_column = "total_modules"
    ordering_table = "modules_by_course"
    parent_column = "course_id"
    child_column = "module_id"

    def _prepare_statements(self) -> None:
        super()._prepare_statements()
        ks = self.keyspace
        self._append_module_id = self.session.prepare(
            f"UPDATE {ks}.courses SET module_ids = module_ids + ? WHERE id = ?"
        )
        self._remove_module_id = self.session.prepare(
            f"UPDATE {ks}.courses SET module_ids = module_ids - ? WHERE id = ?"
        )
        self._insert_approved = self.session.prepare(f"""
            INSERT INTO {ks}.approved_modules_by_course (course_id, position, module_id)
            VALUES (?, ?, ?)
        """)
        self._delete_approved = self.session.prepare(f"""
            DELETE FROM {ks}.approved_modules_by_course
            WHERE course_id = ? AND position = ?
        """)

    async def attach_to_parent(self, entity: ContentEntity) -> None:
        await super().attach_to_parent(entity)
        await self.session.aexecute(self._append_module_id, [[entity.id], entity.course_id])

    async def detach_from_parent(self, entity: ContentEntity) -> None:
        await super().detach_from_parent(entity)
        await self.session.aexecute(self._remove_module_id, [[entity.id], entity.course_id])

    async def remove(self, entity: ContentEntity) -> None:
        await super().remove(entity)
        if entity.approval_status == ApprovalStatus.APPROVED:
            await self.session.aexecute(
                self._delete_approved, [entity.course_id, entity.position]
            )

    async def on_status_change(
        self, entity: ContentEntity, previous: ApprovalStatus
    ) -> None:
        await super().on_status_change(entity, previous)
        if entity.approval_status == ApprovalStatus.APPROVED:
            await self.session.aexecute(
                self._insert_approved, [entity.course_id, entity.position, entity.id]
            )
        elif previous == ApprovalStatus.APPROVED:
            await self.session.aexecute(
                self._delete_approved, [entity.course_id, entity.position]
            )


class MaterialStore(CassandraContentStore):
    """Course materials (unordered)."""

    entity_cls = Material
    counter_column = "total_materials"


class ExamStore(CassandraContentStore):
    """Course exams (unordered)."""

    entity_cls = Exam
    counter_column = "total_exams"
