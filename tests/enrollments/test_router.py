"""API tests for the enrollment routes."""

from collections.abc import Callable, Iterator
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.enrollments.dependencies import get_enrollment_service
from src.enrollments.models import Enrollment, EnrollmentStatus
from src.enrollments.service import AlreadyEnrolledError, NotEnrolledError
from src.main import app


@pytest.fixture
def enrollment_service() -> Iterator[AsyncMock]:
    service = AsyncMock()
    app.dependency_overrides[get_enrollment_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_enrollment_service, None)


class TestEnroll:
    """Tests for POST /v1/enrollments."""

    def test_student_enrolls(
        self, client: TestClient, enrollment_service, auth_headers: Callable
    ) -> None:
        student_id, course_id = uuid4(), uuid4()
        enrollment_service.enroll.return_value = Enrollment(student_id, course_id)

        response = client.post(
            "/v1/enrollments",
            json={"course_id": str(course_id)},
            headers=auth_headers(UserRole.STUDENT, str(student_id)),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "active"
        assert body["percent_complete"] == 0
        enrollment_service.enroll.assert_awaited_once_with(student_id, course_id)

    def test_duplicate_enrollment_conflicts(
        self, client: TestClient, enrollment_service, auth_headers: Callable
    ) -> None:
        enrollment_service.enroll.side_effect = AlreadyEnrolledError()

        response = client.post(
            "/v1/enrollments",
            json={"course_id": str(uuid4())},
            headers=auth_headers(UserRole.STUDENT),
        )

        assert response.status_code == 409
        assert response.json()["message"] == "Already enrolled in this course"

    def test_staff_cannot_enroll(
        self, client: TestClient, enrollment_service, auth_headers: Callable
    ) -> None:
        response = client.post(
            "/v1/enrollments",
            json={"course_id": str(uuid4())},
            headers=auth_headers(UserRole.STAFF),
        )

        assert response.status_code == 403
        enrollment_service.enroll.assert_not_awaited()


class TestCheck:
    """Tests for GET /v1/enrollments/check/{course_id}."""

    def test_not_enrolled(
        self, client: TestClient, enrollment_service, auth_headers: Callable
    ) -> None:
        enrollment_service.get_active.return_value = None

        response = client.get(
            f"/v1/enrollments/check/{uuid4()}", headers=auth_headers(UserRole.STUDENT)
        )

        assert response.status_code == 200
        assert response.json() == {"enrolled": False, "enrollment": None}


class TestSetStatus:
    """Tests for PUT /v1/enrollments/{course_id}/status."""

    def test_student_withdraws(
        self, client: TestClient, enrollment_service, auth_headers: Callable
    ) -> None:
        student_id, course_id = uuid4(), uuid4()
        enrollment_service.set_status.return_value = Enrollment(
            student_id, course_id, status=EnrollmentStatus.WITHDRAWN
        )

        response = client.put(
            f"/v1/enrollments/{course_id}/status",
            json={"status": "withdrawn"},
            headers=auth_headers(UserRole.STUDENT, str(student_id)),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "withdrawn"
        enrollment_service.set_status.assert_awaited_once_with(
            student_id, course_id, EnrollmentStatus.WITHDRAWN
        )

    def test_student_cannot_act_for_another(
        self, client: TestClient, enrollment_service, auth_headers: Callable
    ) -> None:
        response = client.put(
            f"/v1/enrollments/{uuid4()}/status",
            json={"status": "withdrawn", "student_id": str(uuid4())},
            headers=auth_headers(UserRole.STUDENT),
        )

        assert response.status_code == 403
        enrollment_service.set_status.assert_not_awaited()

    def test_admin_acts_for_student(
        self, client: TestClient, enrollment_service, auth_headers: Callable
    ) -> None:
        student_id, course_id = uuid4(), uuid4()
        enrollment_service.set_status.return_value = Enrollment(
            student_id, course_id, status=EnrollmentStatus.COMPLETED
        )

        response = client.put(
            f"/v1/enrollments/{course_id}/status",
            json={"status": "completed", "student_id": str(student_id)},
            headers=auth_headers(UserRole.ADMIN),
        )

        assert response.status_code == 200
        enrollment_service.set_status.assert_awaited_once_with(
            student_id, course_id, EnrollmentStatus.COMPLETED
        )

    def test_not_enrolled(
        self, client: TestClient, enrollment_service, auth_headers: Callable
    ) -> None:
        enrollment_service.set_status.side_effect = NotEnrolledError()

        response = client.put(
            f"/v1/enrollments/{uuid4()}/status",
            json={"status": "withdrawn"},
            headers=auth_headers(UserRole.STUDENT),
        )

        assert response.status_code == 404
