"""Pydantic schemas for the authenticated actor."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.auth.permissions import UserRole


class UserResponse(BaseModel):
    """Actor extracted from a verified access token."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    role: UserRole
    name: str | None = Field(None, description="Display name, when the token has one")
