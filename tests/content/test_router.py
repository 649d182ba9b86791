"""API tests for the content review routes.

The content service is replaced with an AsyncMock through FastAPI
dependency overrides; authentication uses real tokens.
"""

from collections.abc import Callable, Iterator
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.content.dependencies import get_content_service
from src.content.models import Lesson
from src.main import app
from src.workflow.engine import (
    ApprovedContentLockedError,
    ContentNotFoundError,
    InvalidTransitionError,
    ParentBookkeepingError,
    RejectionReasonTooShortError,
)
from src.workflow.models import ApprovalStatus, ContentKind


@pytest.fixture
def content_service() -> Iterator[AsyncMock]:
    service = AsyncMock()
    app.dependency_overrides[get_content_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_content_service, None)


def _lesson(**kwargs) -> Lesson:
    return Lesson(
        course_id=uuid4(),
        module_id=uuid4(),
        owner_id=uuid4(),
        title="Intro",
        **kwargs,
    )


class TestAuthentication:
    """Routes require a valid token and the right role."""

    def test_missing_token(self, client: TestClient, content_service) -> None:
        response = client.get(f"/v1/lessons/{uuid4()}")
        assert response.status_code == 401

    def test_student_cannot_list_pending(
        self, client: TestClient, content_service, auth_headers: Callable
    ) -> None:
        response = client.get(
            "/v1/lessons/pending", headers=auth_headers(UserRole.STUDENT)
        )
        assert response.status_code == 403
        content_service.list_pending.assert_not_awaited()

    def test_staff_cannot_approve(
        self, client: TestClient, content_service, auth_headers: Callable
    ) -> None:
        response = client.put(
            f"/v1/modules/{uuid4()}/approve", headers=auth_headers(UserRole.STAFF)
        )
        assert response.status_code == 403

    def test_service_unavailable(
        self, client: TestClient, auth_headers: Callable
    ) -> None:
        response = client.get(
            f"/v1/exams/{uuid4()}", headers=auth_headers(UserRole.ADMIN)
        )
        assert response.status_code == 503


class TestReviewRoutes:
    """Workflow errors map to HTTP statuses."""

    def test_approve_returns_lesson(
        self, client: TestClient, content_service, auth_headers: Callable
    ) -> None:
        lesson = _lesson(approval_status=ApprovalStatus.APPROVED, is_published=True)
        content_service.approve.return_value = lesson

        response = client.put(
            f"/v1/lessons/{lesson.id}/approve",
            json={"remarks": "Nice"},
            headers=auth_headers(UserRole.ADMIN),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(lesson.id)
        assert data["approval_status"] == "approved"
        assert data["is_published"] is True
        args = content_service.approve.await_args.args
        assert args[1] == ContentKind.LESSON
        assert args[3] == "Nice"

    def test_short_reason(
        self, client: TestClient, content_service, auth_headers: Callable
    ) -> None:
        content_service.reject.side_effect = RejectionReasonTooShortError(10)

        response = client.put(
            f"/v1/lessons/{uuid4()}/request-corrections",
            json={"reason": "too short"},
            headers=auth_headers(UserRole.ADMIN),
        )

        assert response.status_code == 422
        assert "at least 10" in response.json()["message"]

    def test_invalid_transition(
        self, client: TestClient, content_service, auth_headers: Callable
    ) -> None:
        content_service.unpublish.side_effect = InvalidTransitionError(
            "unpublish", ApprovalStatus.DRAFT
        )

        response = client.put(
            f"/v1/materials/{uuid4()}/unpublish", headers=auth_headers(UserRole.ADMIN)
        )

        assert response.status_code == 409

    def test_not_found(
        self, client: TestClient, content_service, auth_headers: Callable
    ) -> None:
        content_service.get.side_effect = ContentNotFoundError(ContentKind.MODULE)

        response = client.get(
            f"/v1/modules/{uuid4()}", headers=auth_headers(UserRole.STUDENT)
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Module not found"

    def test_approved_locked_for_staff(
        self, client: TestClient, content_service, auth_headers: Callable
    ) -> None:
        content_service.edit.side_effect = ApprovedContentLockedError()

        response = client.put(
            f"/v1/lessons/{uuid4()}",
            json={"title": "New"},
            headers=auth_headers(UserRole.STAFF),
        )

        assert response.status_code == 403

    def test_edit_sends_only_set_fields(
        self, client: TestClient, content_service, auth_headers: Callable
    ) -> None:
        content_service.edit.return_value = _lesson()

        response = client.put(
            f"/v1/lessons/{uuid4()}",
            json={"title": "New"},
            headers=auth_headers(UserRole.STAFF),
        )

        assert response.status_code == 200
        assert content_service.edit.await_args.args[3] == {"title": "New"}

    def test_bookkeeping_failure_hides_details(
        self, client: TestClient, content_service, auth_headers: Callable
    ) -> None:
        content_service.delete.side_effect = ParentBookkeepingError()

        response = client.delete(
            f"/v1/lessons/{uuid4()}", headers=auth_headers(UserRole.ADMIN)
        )

        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error"
