"""Learnhub API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config import get_settings
from src.content.router import (
    router_course_content,
    router_exams,
    router_lessons,
    router_materials,
    router_modules,
)
from src.content.service import ContentService
from src.core.context import get_request_id
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.exceptions import AppError
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.courses.router import router as courses_router
from src.courses.service import CourseService
from src.enrollments.router import router as enrollments_router
from src.enrollments.service import EnrollmentService
from src.health import router as health_router
from src.progress.router import router as progress_router
from src.progress.service import ProgressService
from src.storage.router import router as files_router
from src.storage.service import StorageService, create_storage_service
from src.workflow.models import ContentKind


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    storage_service: StorageService | None = None
    course_service: CourseService | None = None
    content_service: ContentService | None = None
    enrollment_service: EnrollmentService | None = None
    progress_service: ProgressService | None = None


app_state = AppState()


def _publish_state(app: FastAPI) -> None:
    """Expose services on app.state for request-scoped dependencies."""
    for name in AppState.__annotations__:
        setattr(app.state, name, getattr(app_state, name))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis is optional: without it uploads are not rate limited
    if settings.redis_enabled:
        try:
            await init_redis()
            logger.info("redis_initialized")
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - upload rate limiting disabled",
            )

    app_state.storage_service = create_storage_service(settings)
    logger.info("storage_service_initialized", backend=settings.storage_backend)

    try:
        app_state.cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        session = app_state.cassandra_session
        keyspace = settings.cassandra_keyspace

        app_state.course_service = CourseService(session=session, keyspace=keyspace)
        app_state.content_service = ContentService(
            session=session,
            keyspace=keyspace,
            settings=settings,
            course_service=app_state.course_service,
            storage=app_state.storage_service,
        )
        app_state.enrollment_service = EnrollmentService(
            session=session,
            keyspace=keyspace,
            course_service=app_state.course_service,
        )
        app_state.progress_service = ProgressService(
            session=session,
            keyspace=keyspace,
            settings=settings,
            module_store=app_state.content_service.stores[ContentKind.MODULE],
            exam_store=app_state.content_service.stores[ContentKind.EXAM],
            enrollment_service=app_state.enrollment_service,
        )
        logger.info("services_initialized")
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    _publish_state(app)

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays off so Starlette never renders stack traces
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Learning management API - courses, content review, progress",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    def _error_response(
        request: Request, status_code: int, message: str, **extra: Any
    ) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=status_code,
            content={
                "error": True,
                "message": message,
                "status_code": status_code,
                "request_id": _get_request_id_safe(request),
                **extra,
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        message = (
            str(exc.detail)
            if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
            else "Internal server error"
        )
        return _error_response(request, exc.status_code, message)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> ORJSONResponse:
        """Domain errors that reached the app without a router mapping."""
        if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error(
                "app_error",
                code=exc.code,
                error_message=exc.message,
                path=request.url.path,
                method=request.method,
            )
            return _error_response(request, exc.status_code, "Internal server error")

        logger.warning(
            "app_error", code=exc.code, path=request.url.path, method=request.method
        )
        return _error_response(request, exc.status_code, exc.message, code=exc.code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            details=[
                {
                    "field": ".".join(str(loc) for loc in err.get("loc", [])),
                    "message": err.get("msg", "Invalid value"),
                }
                for err in exc.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler; details are logged, never returned."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(courses_router)
    app.include_router(router_course_content)
    app.include_router(router_lessons)
    app.include_router(router_modules)
    app.include_router(router_materials)
    app.include_router(router_exams)
    app.include_router(enrollments_router)
    app.include_router(progress_router)

    if settings.storage_backend == "local":
        app.include_router(files_router, prefix=settings.upload_base_url.rstrip("/"))

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Learnhub API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
