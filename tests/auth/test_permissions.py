"""Tests for auth permissions."""

import pytest

from src.auth.permissions import (
    ROLE_HIERARCHY,
    UserRole,
    can_author_content,
    get_role_level,
    has_permission,
    is_admin,
    is_student,
)


class TestUserRole:
    """Tests for UserRole enum."""

    def test_role_values(self) -> None:
        """Roles should have correct string values."""
        assert UserRole.STUDENT.value == "student"
        assert UserRole.STAFF.value == "staff"
        assert UserRole.ADMIN.value == "admin"

    def test_all_roles_have_levels(self) -> None:
        """All UserRole members should have defined levels."""
        for role in UserRole:
            assert role in ROLE_HIERARCHY


class TestGetRoleLevel:
    """Tests for get_role_level function."""

    @pytest.mark.parametrize(
        "role,expected_level",
        [
            (UserRole.STUDENT, 1),
            (UserRole.STAFF, 2),
            (UserRole.ADMIN, 3),
            ("Staff", 2),
            ("admin", 3),
        ],
    )
    def test_role_levels(self, role: UserRole | str, expected_level: int) -> None:
        """Enum members and case-insensitive strings resolve to a level."""
        assert get_role_level(role) == expected_level

    def test_unknown_role_returns_zero(self) -> None:
        assert get_role_level("guest") == 0
        assert get_role_level("superadmin") == 0


class TestHasPermission:
    """Tests for has_permission function."""

    def test_admin_has_all_permissions(self) -> None:
        for role in UserRole:
            assert has_permission(UserRole.ADMIN, role) is True

    def test_staff_permissions(self) -> None:
        assert has_permission(UserRole.STAFF, UserRole.STUDENT) is True
        assert has_permission(UserRole.STAFF, UserRole.STAFF) is True
        assert has_permission(UserRole.STAFF, UserRole.ADMIN) is False

    def test_student_permissions(self) -> None:
        assert has_permission(UserRole.STUDENT, UserRole.STUDENT) is True
        assert has_permission(UserRole.STUDENT, UserRole.STAFF) is False

    def test_unknown_role_has_no_permission(self) -> None:
        assert has_permission("guest", "student") is False


class TestRolePredicates:
    """Tests for the role shortcuts used by the content workflow."""

    def test_is_admin(self) -> None:
        assert is_admin(UserRole.ADMIN) is True
        assert is_admin("staff") is False

    def test_is_student(self) -> None:
        assert is_student("student") is True
        assert is_student(UserRole.ADMIN) is False

    @pytest.mark.parametrize(
        "role,expected",
        [(UserRole.STUDENT, False), (UserRole.STAFF, True), (UserRole.ADMIN, True)],
    )
    def test_can_author_content(self, role: UserRole, expected: bool) -> None:
        assert can_author_content(role) is expected
