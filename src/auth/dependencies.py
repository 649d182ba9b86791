"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Current user extraction from JWT
- Role-based access control
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from src.auth.permissions import UserRole, has_permission
from src.auth.schemas import UserResponse
from src.auth.security import decode_access_token
from src.core.context import set_user_id


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from the Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: Annotated[str | None, Depends(get_token_from_header)],
) -> UserResponse:
    """Get current authenticated user from the access token.

    Raises:
        HTTPException(401): If token is missing, invalid, expired, or carries
            an unknown role
    """
    if not token:
        raise _unauthorized("Access token missing")

    try:
        payload = decode_access_token(token)
        role = UserRole(str(payload["role"]).lower())
    except (JWTError, ValueError) as e:
        raise _unauthorized("Invalid or expired token") from e

    user_id = payload["sub"]
    set_user_id(user_id)

    return UserResponse(
        id=user_id,
        email=payload["email"],
        role=role,
        name=payload.get("name"),
    )


def require_role(*allowed_roles: UserRole):
    """Create dependency requiring one of the given roles (exact match)."""

    async def role_checker(
        user: Annotated[UserResponse, Depends(get_current_user)],
    ) -> UserResponse:
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permission",
            )
        return user

    return role_checker


def require_permission(required_role: UserRole):
    """Create dependency requiring at least a permission level.

    Example:
        @router.post("")
        async def create(
            user: Annotated[UserResponse, Depends(require_permission(UserRole.STAFF))]
        ):
            # Accessible by STAFF and ADMIN
            ...
    """

    async def permission_checker(
        user: Annotated[UserResponse, Depends(get_current_user)],
    ) -> UserResponse:
        if not has_permission(user.role, required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permission",
            )
        return user

    return permission_checker


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentUser = Annotated[UserResponse, Depends(get_current_user)]
AdminUser = Annotated[UserResponse, Depends(require_role(UserRole.ADMIN))]
StaffUser = Annotated[UserResponse, Depends(require_permission(UserRole.STAFF))]
StudentUser = Annotated[UserResponse, Depends(require_role(UserRole.STUDENT))]
