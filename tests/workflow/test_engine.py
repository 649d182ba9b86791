"""Tests for the approval workflow engine.

Runs the state machine over an in-memory store so every guard and every
piece of parent bookkeeping can be observed directly.
"""

from collections import defaultdict
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

import pytest

from src.auth.permissions import UserRole
from src.content.models import Lesson
from src.core.exceptions import (
    AuthorizationError,
    InternalError,
    ValidationFailedError,
)
from src.workflow.engine import (
    ApprovalWorkflow,
    ApprovedContentLockedError,
    ContentNotFoundError,
    EmptyContentError,
    InvalidTransitionError,
    NotContentOwnerError,
    ParentBookkeepingError,
    RejectionReasonTooShortError,
)
from src.workflow.models import (
    Actor,
    ApprovalStatus,
    ContentEntity,
    ContentKind,
)
from src.workflow.strategy import ContentKindStore


REVIEW_REASON = "Please add more examples here"


class InMemoryLessonStore(ContentKindStore):
    """Lesson store keeping rows, counters and child lists in dicts."""

    kind = ContentKind.LESSON

    def __init__(self, fail_attach: bool = False):
        self.rows: dict[UUID, ContentEntity] = {}
        self.counters: dict[UUID, int] = defaultdict(int)
        self.children: dict[UUID, list[UUID]] = defaultdict(list)
        self.status_changes: list[tuple[ApprovalStatus, ApprovalStatus]] = []
        self.fail_attach = fail_attach

    async def get(self, entity_id: UUID) -> ContentEntity | None:
        entity = self.rows.get(entity_id)
        return entity.clone() if entity else None

    async def insert(self, entity: ContentEntity) -> None:
        self.rows[entity.id] = entity.clone()

    async def save(self, entity: ContentEntity) -> None:
        self.rows[entity.id] = entity.clone()

    async def remove(self, entity: ContentEntity) -> None:
        self.rows.pop(entity.id, None)

    async def assign_position(self, entity: ContentEntity) -> int | None:
        return len(self.children[entity.parent_id])

    async def attach_to_parent(self, entity: ContentEntity) -> None:
        if self.fail_attach:
            msg = "counter write timed out"
            raise RuntimeError(msg)
        self.counters[entity.course_id] += 1
        self.children[entity.parent_id].append(entity.id)

    async def detach_from_parent(self, entity: ContentEntity) -> None:
        self.counters[entity.course_id] -= 1
        self.children[entity.parent_id].remove(entity.id)

    async def on_status_change(
        self, entity: ContentEntity, previous: ApprovalStatus
    ) -> None:
        self.status_changes.append((previous, entity.approval_status))


class RowBackedLessonStore(InMemoryLessonStore):
    """Keeps lessons as table rows, so every read rebuilds the entity."""

    def __init__(self) -> None:
        super().__init__()
        self.table: dict[UUID, SimpleNamespace] = {}

    async def get(self, entity_id: UUID) -> ContentEntity | None:
        row = self.table.get(entity_id)
        return Lesson.from_row(row) if row else None

    async def insert(self, entity: ContentEntity) -> None:
        await self.save(entity)

    async def save(self, entity: ContentEntity) -> None:
        self.table[entity.id] = SimpleNamespace(
            **dict(zip(Lesson.COLUMNS, entity.to_row(), strict=True))
        )


def _document(*texts: str) -> dict[str, Any]:
    return {
        "blocks": [{"type": "paragraph", "data": {"text": text}} for text in texts]
    }


@pytest.fixture
def store() -> InMemoryLessonStore:
    return InMemoryLessonStore()


@pytest.fixture
def workflow(store: InMemoryLessonStore) -> ApprovalWorkflow:
    return ApprovalWorkflow(store, reason_min_length=10, history_limit=10)


@pytest.fixture
def staff() -> Actor:
    return Actor(id=uuid4(), role=UserRole.STAFF)


@pytest.fixture
def admin() -> Actor:
    return Actor(id=uuid4(), role=UserRole.ADMIN)


@pytest.fixture
def course_id() -> UUID:
    return uuid4()


@pytest.fixture
def module_id() -> UUID:
    return uuid4()


async def _create(
    workflow: ApprovalWorkflow,
    actor: Actor,
    course_id: UUID,
    module_id: UUID,
    content: dict[str, Any] | None = None,
) -> ContentEntity:
    lesson = Lesson(
        course_id=course_id, module_id=module_id, title="Intro", content=content
    )
    return await workflow.create(actor, lesson)


class TestCreate:
    """Tests for creating content."""

    @pytest.mark.asyncio
    async def test_create_starts_as_draft(
        self, workflow, store, staff, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))

        assert lesson.approval_status == ApprovalStatus.DRAFT
        assert lesson.owner_id == staff.id
        assert lesson.version == 1
        assert lesson.is_published is False
        assert store.counters[course_id] == 1
        assert store.children[module_id] == [lesson.id]

    @pytest.mark.asyncio
    async def test_create_ignores_requested_status(
        self, workflow, staff, course_id, module_id
    ) -> None:
        lesson = Lesson(
            course_id=course_id,
            module_id=module_id,
            title="Intro",
            approval_status=ApprovalStatus.APPROVED,
        )
        created = await workflow.create(staff, lesson)

        assert created.approval_status == ApprovalStatus.DRAFT
        assert created.is_published is False

    @pytest.mark.asyncio
    async def test_positions_follow_creation_order(
        self, workflow, staff, course_id, module_id
    ) -> None:
        first = await _create(workflow, staff, course_id, module_id)
        second = await _create(workflow, staff, course_id, module_id)

        assert (first.position, second.position) == (0, 1)

    @pytest.mark.asyncio
    async def test_student_cannot_create(self, workflow, course_id, module_id) -> None:
        student = Actor(id=uuid4(), role=UserRole.STUDENT)

        with pytest.raises(AuthorizationError):
            await _create(workflow, student, course_id, module_id)

    @pytest.mark.asyncio
    async def test_bookkeeping_failure_is_internal_error(
        self, staff, course_id, module_id
    ) -> None:
        """The entity row stays written; the caller sees a 500-class error."""
        store = InMemoryLessonStore(fail_attach=True)
        workflow = ApprovalWorkflow(store)

        with pytest.raises(ParentBookkeepingError) as exc_info:
            await _create(workflow, staff, course_id, module_id)

        assert isinstance(exc_info.value, InternalError)
        assert exc_info.value.status_code == 500
        assert len(store.rows) == 1
        assert store.counters[course_id] == 0


class TestTransitions:
    """Tests for submit, approve, reject and unpublish."""

    @pytest.mark.asyncio
    async def test_submit_empty_content_fails(
        self, workflow, staff, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id)

        with pytest.raises(EmptyContentError):
            await workflow.submit(staff, lesson.id)

    @pytest.mark.asyncio
    async def test_submit_moves_to_pending(
        self, workflow, store, staff, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))

        submitted = await workflow.submit(staff, lesson.id)

        assert submitted.approval_status == ApprovalStatus.PENDING
        assert store.status_changes == [
            (ApprovalStatus.DRAFT, ApprovalStatus.PENDING)
        ]

    @pytest.mark.asyncio
    async def test_submit_pending_is_invalid(
        self, workflow, staff, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        await workflow.submit(staff, lesson.id)

        with pytest.raises(InvalidTransitionError):
            await workflow.submit(staff, lesson.id)

    @pytest.mark.asyncio
    async def test_only_owner_or_admin_submits(
        self, workflow, staff, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        other = Actor(id=uuid4(), role=UserRole.STAFF)

        with pytest.raises(NotContentOwnerError):
            await workflow.submit(other, lesson.id)

    @pytest.mark.asyncio
    async def test_approve_publishes(
        self, workflow, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))

        approved = await workflow.approve(admin, lesson.id, remarks="  Looks good ")

        assert approved.approval_status == ApprovalStatus.APPROVED
        assert approved.is_published is True
        assert approved.published_at is not None
        assert approved.approved_by == admin.id
        assert approved.admin_remarks == "Looks good"

    @pytest.mark.asyncio
    async def test_staff_cannot_approve(
        self, workflow, staff, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))

        with pytest.raises(AuthorizationError):
            await workflow.approve(staff, lesson.id)

    @pytest.mark.asyncio
    async def test_reapprove_refreshes_remarks(
        self, workflow, store, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        first = await workflow.approve(admin, lesson.id, remarks="Good")

        again = await workflow.approve(admin, lesson.id, remarks="Even better")

        assert again.approval_status == ApprovalStatus.APPROVED
        assert again.admin_remarks == "Even better"
        assert again.published_at == first.published_at
        assert store.status_changes == [(ApprovalStatus.DRAFT, ApprovalStatus.APPROVED)]

    @pytest.mark.asyncio
    async def test_approve_without_remarks_clears_correction_text(
        self, workflow, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        await workflow.reject(admin, lesson.id, REVIEW_REASON)

        approved = await workflow.approve(admin, lesson.id)

        assert approved.admin_remarks is None
        assert approved.rejection_reason is None

    @pytest.mark.asyncio
    async def test_reject_again_revises_reason(
        self, workflow, store, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        await workflow.reject(admin, lesson.id, REVIEW_REASON)

        revised = await workflow.reject(
            admin, lesson.id, "Also fix the second paragraph"
        )

        assert revised.approval_status == ApprovalStatus.REJECTED
        assert revised.rejection_reason == "Also fix the second paragraph"
        assert revised.admin_remarks == "Also fix the second paragraph"
        assert store.status_changes == [(ApprovalStatus.DRAFT, ApprovalStatus.REJECTED)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["approve", "unpublish"])
    async def test_role_checked_before_lookup(
        self, workflow, staff, operation
    ) -> None:
        with pytest.raises(AuthorizationError):
            await getattr(workflow, operation)(staff, uuid4())

    @pytest.mark.asyncio
    async def test_reject_role_checked_before_lookup(self, workflow, staff) -> None:
        with pytest.raises(AuthorizationError):
            await workflow.reject(staff, uuid4(), REVIEW_REASON)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reason,accepted",
        [("abcdefghi", False), ("abcdefghij", True), ("   abcdefghi   ", False)],
    )
    async def test_reject_reason_length(
        self, workflow, staff, admin, course_id, module_id, reason, accepted
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))

        if accepted:
            rejected = await workflow.reject(admin, lesson.id, reason)
            assert rejected.approval_status == ApprovalStatus.REJECTED
            assert rejected.rejection_reason == reason.strip()
        else:
            with pytest.raises(RejectionReasonTooShortError):
                await workflow.reject(admin, lesson.id, reason)

    @pytest.mark.asyncio
    async def test_reject_approved_clears_approval(
        self, workflow, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        await workflow.approve(admin, lesson.id)

        rejected = await workflow.reject(admin, lesson.id, REVIEW_REASON)

        assert rejected.is_published is False
        assert rejected.approved_by is None
        assert rejected.approved_at is None

    @pytest.mark.asyncio
    async def test_unpublish_returns_to_pending(
        self, workflow, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        await workflow.approve(admin, lesson.id)

        unpublished = await workflow.unpublish(admin, lesson.id)

        assert unpublished.approval_status == ApprovalStatus.PENDING
        assert unpublished.is_published is False
        assert unpublished.published_at is None

    @pytest.mark.asyncio
    async def test_unpublish_draft_is_invalid(
        self, workflow, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id)

        with pytest.raises(InvalidTransitionError):
            await workflow.unpublish(admin, lesson.id)

    @pytest.mark.asyncio
    async def test_missing_entity(self, workflow, admin) -> None:
        with pytest.raises(ContentNotFoundError) as exc_info:
            await workflow.approve(admin, uuid4())

        assert exc_info.value.code == "lesson_not_found"


class TestEdit:
    """Tests for editing and version history."""

    @pytest.mark.asyncio
    async def test_first_content_does_not_bump_version(
        self, workflow, staff, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id)

        edited = await workflow.edit(staff, lesson.id, {"content": _document("a")})

        assert edited.version == 1
        assert len(edited.previous_versions) == 0
        assert edited.approval_status == ApprovalStatus.PENDING

    @pytest.mark.asyncio
    async def test_title_only_edit_keeps_status(
        self, workflow, staff, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))

        edited = await workflow.edit(staff, lesson.id, {"title": " Renamed "})

        assert edited.title == "Renamed"
        assert edited.approval_status == ApprovalStatus.DRAFT
        assert edited.version == 1

    @pytest.mark.asyncio
    async def test_staff_cannot_edit_approved(
        self, workflow, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        await workflow.approve(admin, lesson.id)

        with pytest.raises(ApprovedContentLockedError) as exc_info:
            await workflow.edit(staff, lesson.id, {"content": _document("b")})

        assert isinstance(exc_info.value, AuthorizationError)

    @pytest.mark.asyncio
    async def test_admin_edit_of_approved_stays_approved(
        self, workflow, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        await workflow.approve(admin, lesson.id)

        edited = await workflow.edit(admin, lesson.id, {"content": _document("b")})

        assert edited.approval_status == ApprovalStatus.APPROVED
        assert edited.is_published is True
        assert edited.version == 2
        assert edited.previous_versions.latest().saved_by == admin.id

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(
        self, workflow, staff, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id)

        with pytest.raises(ValidationFailedError, match="cannot be edited"):
            await workflow.edit(staff, lesson.id, {"owner_id": uuid4()})

    @pytest.mark.asyncio
    async def test_history_keeps_most_recent(
        self, store, admin, course_id, module_id
    ) -> None:
        workflow = ApprovalWorkflow(store, history_limit=3)
        lesson = await _create(workflow, admin, course_id, module_id, _document("v1"))

        for n in range(2, 7):
            lesson = await workflow.edit(
                admin, lesson.id, {"content": _document(f"v{n}")}
            )

        assert lesson.version == 6
        archived = [snapshot.version for snapshot in lesson.previous_versions]
        assert archived == [3, 4, 5]

    @pytest.mark.asyncio
    async def test_history_limit_survives_row_round_trip(
        self, admin, course_id, module_id
    ) -> None:
        workflow = ApprovalWorkflow(RowBackedLessonStore(), history_limit=3)
        lesson = await _create(workflow, admin, course_id, module_id, _document("v1"))

        for n in range(2, 9):
            lesson = await workflow.edit(
                admin, lesson.id, {"content": _document(f"v{n}")}
            )

        assert lesson.version == 8
        assert [s.version for s in lesson.previous_versions] == [5, 6, 7]
        reloaded = await workflow.get(lesson.id)
        assert len(reloaded.previous_versions) == 3


class TestDelete:
    """Tests for deleting content."""

    @pytest.mark.asyncio
    async def test_delete_detaches_from_parent(
        self, workflow, store, staff, course_id, module_id
    ) -> None:
        keep = await _create(workflow, staff, course_id, module_id)
        drop = await _create(workflow, staff, course_id, module_id)

        await workflow.delete(staff, drop.id)

        assert store.counters[course_id] == 1
        assert store.children[module_id] == [keep.id]
        assert drop.id not in store.rows

    @pytest.mark.asyncio
    async def test_staff_cannot_delete_approved(
        self, workflow, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        await workflow.approve(admin, lesson.id)

        with pytest.raises(ApprovedContentLockedError):
            await workflow.delete(staff, lesson.id)

        await workflow.delete(admin, lesson.id)


class TestReviewCycle:
    """A lesson going through corrections and back to approval."""

    @pytest.mark.asyncio
    async def test_correction_cycle(
        self, workflow, staff, admin, course_id, module_id
    ) -> None:
        lesson = await _create(workflow, staff, course_id, module_id, _document("a"))
        await workflow.submit(staff, lesson.id)

        rejected = await workflow.reject(admin, lesson.id, REVIEW_REASON)
        assert rejected.approval_status == ApprovalStatus.REJECTED
        assert rejected.rejection_reason == REVIEW_REASON

        edited = await workflow.edit(
            staff, lesson.id, {"content": _document("a", "example")}
        )
        assert edited.approval_status == ApprovalStatus.PENDING
        assert edited.rejection_reason is None
        assert edited.version == 2
        assert edited.previous_versions.latest().payload == {
            "content": _document("a")
        }

        approved = await workflow.approve(admin, lesson.id)
        assert approved.approval_status == ApprovalStatus.APPROVED
        assert approved.is_published is True
        assert approved.version == 2
