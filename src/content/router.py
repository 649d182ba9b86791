"""Content management API endpoints.

Provides routes for:
- Lessons, modules, materials, exams: create, edit, delete and review
- Course-scoped listings: modules, materials (with stats), exams
- Lesson uploads: inline editor images and attached resource files
"""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile, status
from pydantic import BaseModel

from src.auth.dependencies import AdminUser, CurrentUser, StaffUser
from src.content.dependencies import ActorDep, ContentServiceDep, handle_content_error
from src.content.models import MaterialType
from src.content.schemas import (
    ApproveRequest,
    CourseMaterialsResponse,
    CreateExamRequest,
    CreateLessonRequest,
    CreateModuleRequest,
    EditorImageFile,
    EditorImageResponse,
    ExamResponse,
    LessonResponse,
    MaterialResponse,
    MessageResponse,
    ModuleResponse,
    RejectRequest,
    UpdateExamRequest,
    UpdateLessonRequest,
    UpdateMaterialRequest,
    UpdateModuleRequest,
    VersionResponse,
)
from src.core.exceptions import AppError
from src.storage.dependencies import UPLOAD_ERROR_RESPONSES, UploadRateLimit
from src.workflow.models import ContentEntity, ContentKind


def _respond(response_model: type[BaseModel], entity: ContentEntity) -> Any:
    return response_model.model_validate(entity.to_dict())


# ==============================================================================
# Shared Workflow Routes
# ==============================================================================


def build_workflow_router(
    kind: ContentKind,
    prefix: str,
    update_schema: type[BaseModel],
    response_model: type[BaseModel],
) -> APIRouter:
    """Routes every content kind shares: reads, edit, delete and review."""
    router = APIRouter(prefix=prefix, tags=[prefix.rsplit("/", 1)[-1]])
    label = kind.label.lower()

    @router.get(
        "/my",
        response_model=list[response_model],
        summary=f"List my {label}s",
    )
    async def list_mine(
        service: ContentServiceDep,
        actor: ActorDep,
        user: StaffUser,
        limit: int = Query(100, ge=1, le=500),
    ) -> list[Any]:
        entities = await service.list_mine(actor, kind, limit)
        return [_respond(response_model, e) for e in entities]

    @router.get(
        "/pending",
        response_model=list[response_model],
        summary=f"List {label}s awaiting review",
    )
    async def list_pending(
        service: ContentServiceDep,
        actor: ActorDep,
        user: AdminUser,
        limit: int = Query(100, ge=1, le=500),
    ) -> list[Any]:
        try:
            entities = await service.list_pending(actor, kind, limit)
        except AppError as e:
            raise handle_content_error(e) from e
        return [_respond(response_model, e) for e in entities]

    @router.get(
        "/{content_id}",
        response_model=response_model,
        summary=f"Get {label}",
    )
    async def get_content(
        content_id: UUID, service: ContentServiceDep, actor: ActorDep
    ) -> Any:
        try:
            entity = await service.get(actor, kind, content_id)
        except AppError as e:
            raise handle_content_error(e) from e
        return _respond(response_model, entity)

    @router.put(
        "/{content_id}",
        response_model=response_model,
        summary=f"Edit {label}",
    )
    async def edit_content(
        content_id: UUID,
        data: update_schema,  # type: ignore[valid-type]
        service: ContentServiceDep,
        actor: ActorDep,
        user: StaffUser,
    ) -> Any:
        """Edit content. A non-admin content change sends it back to review."""
        try:
            entity = await service.edit(
                actor, kind, content_id, data.model_dump(exclude_unset=True)
            )
        except AppError as e:
            raise handle_content_error(e) from e
        return _respond(response_model, entity)

    @router.delete(
        "/{content_id}",
        response_model=MessageResponse,
        summary=f"Delete {label}",
    )
    async def delete_content(
        content_id: UUID,
        service: ContentServiceDep,
        actor: ActorDep,
        user: StaffUser,
    ) -> MessageResponse:
        try:
            await service.delete(actor, kind, content_id)
        except AppError as e:
            raise handle_content_error(e) from e
        return MessageResponse(message=f"{kind.label} deleted")

    @router.put(
        "/{content_id}/submit",
        response_model=response_model,
        summary=f"Submit {label} for review",
    )
    async def submit_content(
        content_id: UUID,
        service: ContentServiceDep,
        actor: ActorDep,
        user: StaffUser,
    ) -> Any:
        try:
            entity = await service.submit(actor, kind, content_id)
        except AppError as e:
            raise handle_content_error(e) from e
        return _respond(response_model, entity)

    @router.put(
        "/{content_id}/approve",
        response_model=response_model,
        summary=f"Approve and publish {label}",
    )
    async def approve_content(
        content_id: UUID,
        service: ContentServiceDep,
        actor: ActorDep,
        user: AdminUser,
        data: ApproveRequest | None = None,
    ) -> Any:
        remarks = data.remarks if data else None
        try:
            entity = await service.approve(actor, kind, content_id, remarks)
        except AppError as e:
            raise handle_content_error(e) from e
        return _respond(response_model, entity)

    @router.put(
        "/{content_id}/request-corrections",
        response_model=response_model,
        summary=f"Request corrections on {label}",
    )
    async def request_corrections(
        content_id: UUID,
        data: RejectRequest,
        service: ContentServiceDep,
        actor: ActorDep,
        user: AdminUser,
    ) -> Any:
        try:
            entity = await service.reject(actor, kind, content_id, data.reason)
        except AppError as e:
            raise handle_content_error(e) from e
        return _respond(response_model, entity)

    @router.put(
        "/{content_id}/unpublish",
        response_model=response_model,
        summary=f"Unpublish {label}",
    )
    async def unpublish_content(
        content_id: UUID,
        service: ContentServiceDep,
        actor: ActorDep,
        user: AdminUser,
    ) -> Any:
        try:
            entity = await service.unpublish(actor, kind, content_id)
        except AppError as e:
            raise handle_content_error(e) from e
        return _respond(response_model, entity)

    @router.get(
        "/{content_id}/versions",
        response_model=list[VersionResponse],
        summary=f"List archived {label} versions",
    )
    async def list_versions(
        content_id: UUID,
        service: ContentServiceDep,
        actor: ActorDep,
        user: StaffUser,
    ) -> list[VersionResponse]:
        try:
            versions = await service.list_versions(actor, kind, content_id)
        except AppError as e:
            raise handle_content_error(e) from e
        return [VersionResponse(**v.to_dict()) for v in versions]

    return router


# ==============================================================================
# Lessons
# ==============================================================================

router_lessons = build_workflow_router(
    ContentKind.LESSON, "/v1/lessons", UpdateLessonRequest, LessonResponse
)


@router_lessons.post(
    "",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create lesson",
)
async def create_lesson(
    data: CreateLessonRequest,
    service: ContentServiceDep,
    actor: ActorDep,
    user: StaffUser,
) -> Any:
    """Create a draft lesson at the end of its module."""
    try:
        lesson = await service.create_lesson(actor, data)
    except AppError as e:
        raise handle_content_error(e) from e
    return _respond(LessonResponse, lesson)


@router_lessons.post(
    "/upload-image",
    response_model=EditorImageResponse,
    responses=UPLOAD_ERROR_RESPONSES,
    dependencies=[UploadRateLimit],
    summary="Upload editor image",
)
async def upload_image(
    service: ContentServiceDep,
    actor: ActorDep,
    user: StaffUser,
    image: Annotated[UploadFile, File(description="Image file to upload")],
) -> EditorImageResponse:
    content = await image.read()
    try:
        stored = await service.upload_image(
            actor, content, image.content_type or "application/octet-stream", image.filename
        )
    except AppError as e:
        raise handle_content_error(e) from e
    return EditorImageResponse(file=EditorImageFile(url=stored.url))


@router_lessons.post(
    "/{content_id}/attach-file",
    response_model=LessonResponse,
    responses=UPLOAD_ERROR_RESPONSES,
    dependencies=[UploadRateLimit],
    summary="Attach a resource file to a lesson",
)
async def attach_file(
    content_id: UUID,
    service: ContentServiceDep,
    actor: ActorDep,
    user: StaffUser,
    file: Annotated[UploadFile, File(description="Resource file")],
) -> Any:
    content = await file.read()
    try:
        lesson = await service.attach_file(
            actor,
            content_id,
            content,
            file.content_type or "application/octet-stream",
            file.filename,
        )
    except AppError as e:
        raise handle_content_error(e) from e
    return _respond(LessonResponse, lesson)


# ==============================================================================
# Modules
# ==============================================================================

router_modules = build_workflow_router(
    ContentKind.MODULE, "/v1/modules", UpdateModuleRequest, ModuleResponse
)


@router_modules.post(
    "",
    response_model=ModuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create module",
)
async def create_module(
    data: CreateModuleRequest,
    service: ContentServiceDep,
    actor: ActorDep,
    user: StaffUser,
) -> Any:
    try:
        module = await service.create_module(actor, data)
    except AppError as e:
        raise handle_content_error(e) from e
    return _respond(ModuleResponse, module)


@router_modules.get(
    "/{content_id}/lessons",
    response_model=list[LessonResponse],
    summary="List lessons of a module",
)
async def list_module_lessons(
    content_id: UUID, service: ContentServiceDep, actor: ActorDep
) -> list[Any]:
    """Lessons in position order; students see published lessons only."""
    try:
        lessons = await service.list_module_lessons(actor, content_id)
    except AppError as e:
        raise handle_content_error(e) from e
    return [_respond(LessonResponse, lesson) for lesson in lessons]


# ==============================================================================
# Materials
# ==============================================================================

router_materials = build_workflow_router(
    ContentKind.MATERIAL, "/v1/materials", UpdateMaterialRequest, MaterialResponse
)


@router_materials.post(
    "",
    response_model=MaterialResponse,
    status_code=status.HTTP_201_CREATED,
    responses=UPLOAD_ERROR_RESPONSES,
    dependencies=[UploadRateLimit],
    summary="Upload material",
)
async def create_material(
    service: ContentServiceDep,
    actor: ActorDep,
    user: StaffUser,
    course_id: Annotated[UUID, Form()],
    title: Annotated[str, Form(min_length=3, max_length=200)],
    file: Annotated[UploadFile, File(description="Material file")],
    description: Annotated[str | None, Form(max_length=2000)] = None,
    material_type: Annotated[MaterialType | None, Form()] = None,
) -> Any:
    """Upload a file and create a draft material for it."""
    content = await file.read()
    try:
        material = await service.create_material(
            actor,
            course_id=course_id,
            title=title,
            content=content,
            content_type=file.content_type or "application/octet-stream",
            filename=file.filename,
            description=description,
            material_type=material_type,
        )
    except AppError as e:
        raise handle_content_error(e) from e
    return _respond(MaterialResponse, material)


# ==============================================================================
# Exams
# ==============================================================================

router_exams = build_workflow_router(
    ContentKind.EXAM, "/v1/exams", UpdateExamRequest, ExamResponse
)


@router_exams.post(
    "",
    response_model=ExamResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create exam",
)
async def create_exam(
    data: CreateExamRequest,
    service: ContentServiceDep,
    actor: ActorDep,
    user: StaffUser,
) -> Any:
    try:
        exam = await service.create_exam(actor, data)
    except AppError as e:
        raise handle_content_error(e) from e
    return _respond(ExamResponse, exam)


# ==============================================================================
# Course Content
# ==============================================================================

router_course_content = APIRouter(prefix="/v1/courses", tags=["courses"])


@router_course_content.get(
    "/{course_id}/modules",
    response_model=list[ModuleResponse],
    summary="List modules of a course",
)
async def list_course_modules(
    course_id: UUID, service: ContentServiceDep, actor: ActorDep
) -> list[Any]:
    """Modules in position order; students see approved modules only."""
    try:
        modules = await service.list_course_modules(actor, course_id)
    except AppError as e:
        raise handle_content_error(e) from e
    return [_respond(ModuleResponse, module) for module in modules]


@router_course_content.get(
    "/{course_id}/materials",
    response_model=CourseMaterialsResponse,
    summary="List materials of a course with stats",
)
async def list_course_materials(
    course_id: UUID,
    service: ContentServiceDep,
    actor: ActorDep,
    user: StaffUser,
) -> CourseMaterialsResponse:
    try:
        result = await service.list_course_materials(actor, course_id)
    except AppError as e:
        raise handle_content_error(e) from e
    return CourseMaterialsResponse(
        materials=[_respond(MaterialResponse, m) for m in result["materials"]],
        modules=[_respond(ModuleResponse, m) for m in result["modules"]],
        stats=result["stats"],
    )


@router_course_content.get(
    "/{course_id}/exams",
    response_model=list[ExamResponse],
    summary="List exams of a course",
)
async def list_course_exams(
    course_id: UUID, service: ContentServiceDep, actor: ActorDep, user: CurrentUser
) -> list[Any]:
    try:
        exams = await service.list_course_exams(actor, course_id)
    except AppError as e:
        raise handle_content_error(e) from e
    return [_respond(ExamResponse, exam) for exam in exams]
