"""API tests for the course registry routes."""

from collections.abc import Callable, Iterator
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.courses.dependencies import get_course_service
from src.courses.models import Course, CourseCounters
from src.courses.service import CourseNotFoundError
from src.main import app


@pytest.fixture
def course_service() -> Iterator[AsyncMock]:
    service = AsyncMock()
    app.dependency_overrides[get_course_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_course_service, None)


class TestCreateCourse:
    def test_staff_creates_course(
        self, client: TestClient, course_service, auth_headers: Callable
    ) -> None:
        owner_id = uuid4()
        course_service.create_course.return_value = Course(
            title="Pharmacology Basics", owner_id=owner_id
        )

        response = client.post(
            "/v1/courses",
            json={"title": "Pharmacology Basics"},
            headers=auth_headers(UserRole.STAFF, str(owner_id)),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["slug"] == "pharmacology-basics"
        assert body["counters"]["total_lessons"] == 0

    def test_student_cannot_create(
        self, client: TestClient, course_service, auth_headers: Callable
    ) -> None:
        response = client.post(
            "/v1/courses",
            json={"title": "Pharmacology Basics"},
            headers=auth_headers(UserRole.STUDENT),
        )

        assert response.status_code == 403
        course_service.create_course.assert_not_awaited()


class TestGetCourse:
    def test_includes_counters(
        self, client: TestClient, course_service, auth_headers: Callable
    ) -> None:
        course = Course(title="Dosage", owner_id=uuid4())
        course_service.require_course.return_value = course
        course_service.get_counters.return_value = CourseCounters(
            course.id, total_modules=2, total_lessons=5
        )

        response = client.get(
            f"/v1/courses/{course.id}", headers=auth_headers(UserRole.STUDENT)
        )

        assert response.status_code == 200
        assert response.json()["counters"] == {
            "total_modules": 2,
            "total_lessons": 5,
            "total_materials": 0,
            "total_exams": 0,
        }

    def test_missing_course(
        self, client: TestClient, course_service, auth_headers: Callable
    ) -> None:
        course_service.require_course.side_effect = CourseNotFoundError()

        response = client.get(
            f"/v1/courses/{uuid4()}", headers=auth_headers(UserRole.STUDENT)
        )

        assert response.status_code == 404


class TestRecount:
    def test_admin_only(
        self, client: TestClient, course_service, auth_headers: Callable
    ) -> None:
        response = client.post(
            f"/v1/courses/{uuid4()}/recount", headers=auth_headers(UserRole.STAFF)
        )

        assert response.status_code == 403
        course_service.recount.assert_not_awaited()

    def test_returns_reconciled_counters(
        self, client: TestClient, course_service, auth_headers: Callable
    ) -> None:
        course_id = uuid4()
        course_service.recount.return_value = CourseCounters(
            course_id, total_modules=1, total_lessons=3, total_materials=2
        )

        response = client.post(
            f"/v1/courses/{course_id}/recount", headers=auth_headers(UserRole.ADMIN)
        )

        assert response.status_code == 200
        assert response.json()["total_lessons"] == 3
        course_service.recount.assert_awaited_once_with(course_id)
