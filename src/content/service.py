"""Content service layer.

Business logic for:
- Creating lessons, modules, materials and exams under their parents
- Driving the approval workflow for every content kind
- Visibility rules for students (published content only)
- Course-scoped listings and lesson file uploads
"""

from collections import Counter
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from src.config.settings import Settings
from src.content.models import (
    CATEGORY_BY_TYPE,
    Exam,
    Lesson,
    Material,
    MaterialCategory,
    MaterialType,
    Module,
)
from src.content.schemas import (
    CreateExamRequest,
    CreateLessonRequest,
    CreateModuleRequest,
)
from src.content.stores import (
    CassandraContentStore,
    ExamStore,
    LessonStore,
    MaterialStore,
    ModuleStore,
)
from src.content.validators import resource_type_for
from src.core.exceptions import AuthorizationError
from src.workflow import (
    Actor,
    ApprovalStatus,
    ApprovalWorkflow,
    ContentEntity,
    ContentKind,
    VersionSnapshot,
)
from src.workflow.engine import (
    ApprovedContentLockedError,
    ContentNotFoundError,
    NotContentOwnerError,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.courses.service import CourseService
    from src.storage.service import StorageService, StoredFile

logger = structlog.get_logger(__name__)


MATERIAL_TYPE_BY_MAJOR: dict[str, MaterialType] = {
    "video": MaterialType.VIDEO,
    "audio": MaterialType.AUDIO,
}


def material_type_for(content_type: str) -> MaterialType:
    """Guess the material type of an uploaded file."""
    return MATERIAL_TYPE_BY_MAJOR.get(content_type.split("/")[0], MaterialType.PDF)


class ContentService:
    """Service for every reviewable content kind."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        settings: Settings,
        course_service: "CourseService",
        storage: "StorageService",
    ):
        """Initialize stores and one workflow per kind."""
        retries = settings.workflow_position_claim_retries
        self.stores: dict[ContentKind, CassandraContentStore] = {
            ContentKind.LESSON: LessonStore(session, keyspace, retries),
            ContentKind.MODULE: ModuleStore(session, keyspace, retries),
            ContentKind.MATERIAL: MaterialStore(session, keyspace, retries),
            ContentKind.EXAM: ExamStore(session, keyspace, retries),
        }
        self.workflows = {
            kind: ApprovalWorkflow(
                store,
                reason_min_length=settings.workflow_rejection_reason_min_length,
                history_limit=settings.workflow_version_history_limit,
            )
            for kind, store in self.stores.items()
        }
        self.settings = settings
        self.course_service = course_service
        self.storage = storage

    def workflow(self, kind: ContentKind) -> ApprovalWorkflow:
        return self.workflows[kind]

    # ==========================================================================
    # Creation
    # ==========================================================================

    async def create_lesson(self, actor: Actor, data: CreateLessonRequest) -> Lesson:
        """Create a draft lesson at the end of its module."""
        module = await self.stores[ContentKind.MODULE].get(data.module_id)
        if module is None:
            raise ContentNotFoundError(ContentKind.MODULE)

        lesson = Lesson(course_id=module.course_id, **data.model_dump(exclude_none=True))
        return await self.workflows[ContentKind.LESSON].create(actor, lesson)

    async def create_module(self, actor: Actor, data: CreateModuleRequest) -> Module:
        """Create a draft module at the end of its course."""
        await self.course_service.require_course(data.course_id)
        module = Module(**data.model_dump())
        return await self.workflows[ContentKind.MODULE].create(actor, module)

    async def create_exam(self, actor: Actor, data: CreateExamRequest) -> Exam:
        await self.course_service.require_course(data.course_id)
        exam = Exam(**data.model_dump())
        return await self.workflows[ContentKind.EXAM].create(actor, exam)

    async def create_material(
        self,
        actor: Actor,
        course_id: UUID,
        title: str,
        content: bytes,
        content_type: str,
        filename: str | None,
        description: str | None = None,
        material_type: MaterialType | None = None,
    ) -> Material:
        """Store an uploaded file and create a draft material for it.

        Nothing is written when the actor cannot author or the course is
        missing.
        """
        if not actor.can_author:
            raise AuthorizationError("Only staff and admins can create content")
        await self.course_service.require_course(course_id)

        stored = await self.storage.upload(content, content_type, "materials", filename)
        material_type = material_type or material_type_for(stored.content_type)
        material = Material(
            course_id=course_id,
            title=title,
            description=description,
            material_type=material_type,
            category=CATEGORY_BY_TYPE[material_type],
            file_url=stored.url,
            file_name=stored.filename,
            file_size=stored.size,
        )
        return await self.workflows[ContentKind.MATERIAL].create(actor, material)

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get(self, actor: Actor, kind: ContentKind, entity_id: UUID) -> ContentEntity:
        """Load content; unpublished content is hidden from students."""
        entity = await self.workflows[kind].get(entity_id)
        if not self._visible_to(actor, entity):
            raise ContentNotFoundError(kind)
        return entity

    async def list_mine(
        self, actor: Actor, kind: ContentKind, limit: int = 100
    ) -> list[ContentEntity]:
        return await self.stores[kind].list_by_owner(actor.id, limit)

    async def list_pending(
        self, actor: Actor, kind: ContentKind, limit: int = 100
    ) -> list[ContentEntity]:
        """Admin review queue for one kind, newest first."""
        if not actor.is_admin:
            raise AuthorizationError("Only admins can review content")
        return await self.stores[kind].list_by_status(ApprovalStatus.PENDING, limit)

    async def list_versions(
        self, actor: Actor, kind: ContentKind, entity_id: UUID
    ) -> list[VersionSnapshot]:
        """Archived payloads, newest first."""
        entity = await self.workflows[kind].get(entity_id)
        if not (actor.is_admin or actor.owns(entity)):
            raise NotContentOwnerError
        return list(reversed(list(entity.previous_versions)))

    async def list_module_lessons(self, actor: Actor, module_id: UUID) -> list[Lesson]:
        """Lessons of a module ordered by position."""
        module = await self.get(actor, ContentKind.MODULE, module_id)
        store: LessonStore = self.stores[ContentKind.LESSON]
        lessons = await store.list_children(module.id)
        return [lesson for lesson in lessons if self._visible_to(actor, lesson)]

    async def list_course_modules(self, actor: Actor, course_id: UUID) -> list[Module]:
        """Modules of a course ordered by position."""
        await self.course_service.require_course(course_id)
        store: ModuleStore = self.stores[ContentKind.MODULE]
        modules = await store.list_children(course_id)
        return [module for module in modules if self._visible_to(actor, module)]

    async def list_course_exams(self, actor: Actor, course_id: UUID) -> list[Exam]:
        await self.course_service.require_course(course_id)
        exams = await self.stores[ContentKind.EXAM].list_by_course(course_id)
        return [exam for exam in exams if self._visible_to(actor, exam)]

    async def list_course_materials(
        self, actor: Actor, course_id: UUID
    ) -> dict[str, Any]:
        """Materials and modules of a course with counts by category and status."""
        if not actor.can_author:
            raise AuthorizationError("Only staff and admins can manage materials")
        await self.course_service.require_course(course_id)

        materials = await self.stores[ContentKind.MATERIAL].list_by_course(course_id)
        modules = await self.stores[ContentKind.MODULE].list_by_course(course_id)

        by_category = Counter(m.category.value for m in materials)
        by_status = Counter(e.approval_status.value for e in [*materials, *modules])
        stats = {
            "total": len(materials) + len(modules),
            "by_category": {
                **{c.value: by_category.get(c.value, 0) for c in MaterialCategory},
                "module": len(modules),
            },
            "by_status": {s.value: by_status.get(s.value, 0) for s in ApprovalStatus},
        }
        return {"materials": materials, "modules": modules, "stats": stats}

    # ==========================================================================
    # Workflow
    # ==========================================================================

    async def edit(
        self, actor: Actor, kind: ContentKind, entity_id: UUID, changes: dict[str, Any]
    ) -> ContentEntity:
        if kind == ContentKind.MATERIAL and changes.get("material_type") is not None:
            changes.setdefault(
                "category", CATEGORY_BY_TYPE[MaterialType(changes["material_type"])]
            )
        return await self.workflows[kind].edit(actor, entity_id, changes)

    async def submit(self, actor: Actor, kind: ContentKind, entity_id: UUID) -> ContentEntity:
        return await self.workflows[kind].submit(actor, entity_id)

    async def approve(
        self, actor: Actor, kind: ContentKind, entity_id: UUID, remarks: str | None = None
    ) -> ContentEntity:
        return await self.workflows[kind].approve(actor, entity_id, remarks)

    async def reject(
        self, actor: Actor, kind: ContentKind, entity_id: UUID, reason: str
    ) -> ContentEntity:
        return await self.workflows[kind].reject(actor, entity_id, reason)

    async def unpublish(
        self, actor: Actor, kind: ContentKind, entity_id: UUID
    ) -> ContentEntity:
        return await self.workflows[kind].unpublish(actor, entity_id)

    async def delete(self, actor: Actor, kind: ContentKind, entity_id: UUID) -> ContentEntity:
        return await self.workflows[kind].delete(actor, entity_id)

    # ==========================================================================
    # Uploads
    # ==========================================================================

    async def upload_image(
        self, actor: Actor, content: bytes, content_type: str, filename: str | None
    ) -> "StoredFile":
        """Store an inline editor image."""
        if not actor.can_author:
            raise AuthorizationError("Only staff and admins can upload images")
        return await self.storage.upload(
            content,
            content_type,
            "images",
            filename,
            allowed_types=self.settings.upload_allowed_image_types,
        )

    async def attach_file(
        self,
        actor: Actor,
        lesson_id: UUID,
        content: bytes,
        content_type: str,
        filename: str | None,
    ) -> Lesson:
        """Store a file and append it to the lesson's resources.

        Edit rights are checked before the file is stored.
        """
        workflow = self.workflows[ContentKind.LESSON]
        lesson = await workflow.get(lesson_id)
        if not (actor.is_admin or actor.owns(lesson)):
            raise NotContentOwnerError
        if not actor.is_admin and lesson.approval_status == ApprovalStatus.APPROVED:
            raise ApprovedContentLockedError

        stored = await self.storage.upload(content, content_type, "resources", filename)
        resource = {
            "type": resource_type_for(stored.content_type).value,
            "url": stored.url,
            "name": stored.filename,
            "size": stored.size,
            "uploaded_at": stored.uploaded_at,
        }
        lesson = await workflow.edit(
            actor, lesson_id, {"resources": [*lesson.resources, resource]}
        )
        logger.info(
            "lesson_file_attached",
            lesson_id=str(lesson_id),
            file_name=stored.filename,
            file_size=stored.size,
        )
        return lesson

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @staticmethod
    def _visible_to(actor: Actor, entity: ContentEntity) -> bool:
        return actor.can_author or entity.is_published
