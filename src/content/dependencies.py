"""FastAPI dependencies for content management.

Provides dependency injection for:
- Content service
- The authenticated actor
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.auth.dependencies import CurrentUser
from src.content.service import ContentService
from src.core.exceptions import AppError, to_http_exception
from src.workflow.models import Actor


async def get_content_service(request: Request) -> ContentService:
    """Get content service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "content_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Content service not available",
        )
    return app_state.content_service


async def get_actor(user: CurrentUser) -> Actor:
    """Workflow actor for the authenticated user."""
    return Actor.from_user(user)


ContentServiceDep = Annotated[ContentService, Depends(get_content_service)]
ActorDep = Annotated[Actor, Depends(get_actor)]


def handle_content_error(error: AppError) -> HTTPException:
    """Convert content errors to HTTP exceptions."""
    status_map = {
        "invalid_transition": status.HTTP_409_CONFLICT,
        "position_contention": status.HTTP_409_CONFLICT,
        "reason_too_short": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "empty_content": status.HTTP_422_UNPROCESSABLE_ENTITY,
    }
    return to_http_exception(error, status_map)
