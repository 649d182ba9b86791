"""Pydantic schemas for upload errors."""

from pydantic import BaseModel, Field


class StorageErrorResponse(BaseModel):
    """Upload error body, documented on upload routes."""

    error: bool = True
    message: str = Field(..., description="Error message")
    status_code: int
    request_id: str | None = None
