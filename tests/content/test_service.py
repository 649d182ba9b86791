"""Tests for ContentService rules that sit around the workflow engine."""

from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from src.auth.permissions import UserRole
from src.config.settings import Settings
from src.content.models import Lesson, Material, MaterialType, Module
from src.content.service import ContentService, material_type_for
from src.core.exceptions import AuthorizationError
from src.workflow.engine import (
    ApprovedContentLockedError,
    ContentNotFoundError,
    NotContentOwnerError,
)
from src.workflow.models import Actor, ApprovalStatus, ContentKind


@pytest.fixture
def storage() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def course_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(storage: AsyncMock, course_service: AsyncMock) -> ContentService:
    session = Mock()
    session.prepare.side_effect = lambda cql: cql
    service = ContentService(
        session=session,
        keyspace="learnhub",
        settings=Settings(),
        course_service=course_service,
        storage=storage,
    )
    for kind in ContentKind:
        service.stores[kind] = AsyncMock()
        service.workflows[kind] = AsyncMock()
    return service


def _actor(role: UserRole) -> Actor:
    return Actor(id=uuid4(), role=role)


class TestVisibility:
    """Students only see published content."""

    @pytest.mark.asyncio
    async def test_student_cannot_see_draft(self, service: ContentService) -> None:
        service.workflows[ContentKind.LESSON].get.return_value = Lesson(title="Intro")

        with pytest.raises(ContentNotFoundError):
            await service.get(_actor(UserRole.STUDENT), ContentKind.LESSON, uuid4())

    @pytest.mark.asyncio
    async def test_staff_sees_draft(self, service: ContentService) -> None:
        lesson = Lesson(title="Intro")
        service.workflows[ContentKind.LESSON].get.return_value = lesson

        found = await service.get(_actor(UserRole.STAFF), ContentKind.LESSON, lesson.id)

        assert found is lesson

    @pytest.mark.asyncio
    async def test_student_module_list_filtered(self, service: ContentService) -> None:
        published = Module(title="Published", is_published=True)
        draft = Module(title="Draft")
        service.stores[ContentKind.MODULE].list_children.return_value = [
            published,
            draft,
        ]

        modules = await service.list_course_modules(_actor(UserRole.STUDENT), uuid4())

        assert modules == [published]

    @pytest.mark.asyncio
    async def test_pending_queue_is_admin_only(self, service: ContentService) -> None:
        with pytest.raises(AuthorizationError):
            await service.list_pending(_actor(UserRole.STAFF), ContentKind.EXAM)


class TestMaterials:
    """Tests for material uploads and listings."""

    @pytest.mark.parametrize(
        "content_type,expected",
        [
            ("video/mp4", MaterialType.VIDEO),
            ("audio/mpeg", MaterialType.AUDIO),
            ("application/pdf", MaterialType.PDF),
        ],
    )
    def test_material_type_for(self, content_type: str, expected: MaterialType) -> None:
        assert material_type_for(content_type) == expected

    @pytest.mark.asyncio
    async def test_student_upload_rejected_before_storage(
        self, service: ContentService, storage: AsyncMock
    ) -> None:
        with pytest.raises(AuthorizationError):
            await service.create_material(
                _actor(UserRole.STUDENT),
                uuid4(),
                "Notes",
                b"%PDF-1.7",
                "application/pdf",
                "notes.pdf",
            )

        storage.upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stats_by_category_and_status(self, service: ContentService) -> None:
        materials = [
            Material(title="Slides", material_type=MaterialType.PDF),
            Material(
                title="Talk",
                material_type=MaterialType.VIDEO,
                approval_status=ApprovalStatus.APPROVED,
            ),
        ]
        modules = [Module(title="Week 1", approval_status=ApprovalStatus.PENDING)]
        service.stores[ContentKind.MATERIAL].list_by_course.return_value = materials
        service.stores[ContentKind.MODULE].list_by_course.return_value = modules

        result = await service.list_course_materials(_actor(UserRole.STAFF), uuid4())

        assert result["stats"] == {
            "total": 3,
            "by_category": {"pdf": 1, "video": 1, "audio": 0, "module": 1},
            "by_status": {"draft": 1, "pending": 1, "approved": 1, "rejected": 0},
        }

    @pytest.mark.asyncio
    async def test_edit_type_updates_category(self, service: ContentService) -> None:
        actor = _actor(UserRole.STAFF)
        material_id = uuid4()

        await service.edit(
            actor, ContentKind.MATERIAL, material_id, {"material_type": "Audio"}
        )

        service.workflows[ContentKind.MATERIAL].edit.assert_awaited_once()
        changes = service.workflows[ContentKind.MATERIAL].edit.await_args.args[2]
        assert changes["category"].value == "audio"


class TestAttachFile:
    """Edit rights are checked before a resource file is stored."""

    @pytest.mark.asyncio
    async def test_other_staff_cannot_attach(
        self, service: ContentService, storage: AsyncMock
    ) -> None:
        lesson = Lesson(title="Intro", owner_id=uuid4())
        service.workflows[ContentKind.LESSON].get.return_value = lesson

        with pytest.raises(NotContentOwnerError):
            await service.attach_file(
                _actor(UserRole.STAFF), lesson.id, b"%PDF-", "application/pdf", "a.pdf"
            )

        storage.upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_owner_cannot_attach_to_approved(
        self, service: ContentService, storage: AsyncMock
    ) -> None:
        owner = _actor(UserRole.STAFF)
        lesson = Lesson(
            title="Intro", owner_id=owner.id, approval_status=ApprovalStatus.APPROVED
        )
        service.workflows[ContentKind.LESSON].get.return_value = lesson

        with pytest.raises(ApprovedContentLockedError):
            await service.attach_file(owner, lesson.id, b"%PDF-", "application/pdf", "a.pdf")

        storage.upload.assert_not_awaited()
