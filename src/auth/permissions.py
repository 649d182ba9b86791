"""Role-based access control (RBAC).

Hierarchical permission system:
- ADMIN (level 3): approves content, manages every entity
- STAFF (level 2): instructors; author and submit their own content
- STUDENT (level 1): enroll in courses and record progress
"""

from enum import Enum


class UserRole(str, Enum):
    """User roles with hierarchical levels."""

    STUDENT = "student"
    STAFF = "staff"
    ADMIN = "admin"


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.STUDENT: 1,
    UserRole.STAFF: 2,
    UserRole.ADMIN: 3,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role.

    Unknown role strings get level 0 and therefore no permissions.
    """
    if isinstance(role, str):
        try:
            role = UserRole(role.lower())
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.STAFF)
        True
        >>> has_permission("student", "staff")
        False
    """
    return get_role_level(user_role) >= get_role_level(required_role)


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return get_role_level(role) == ROLE_HIERARCHY[UserRole.ADMIN]


def is_student(role: UserRole | str) -> bool:
    """Check if role is STUDENT."""
    return get_role_level(role) == ROLE_HIERARCHY[UserRole.STUDENT]


def can_author_content(role: UserRole | str) -> bool:
    """Staff and admins may create content."""
    return has_permission(role, UserRole.STAFF)
