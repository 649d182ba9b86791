"""Shared fixtures for API tests."""

from collections.abc import Callable
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.auth.security import create_access_token
from src.main import app


@pytest.fixture
def client() -> TestClient:
    """Test client without lifespan; no database or Redis is attached."""
    return TestClient(app)


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Mint an access token for a role."""

    def _make(role: UserRole, user_id: str | None = None) -> str:
        return create_access_token(
            {
                "sub": user_id or str(uuid4()),
                "email": f"{role.value}@example.com",
                "role": role.value,
            }
        )

    return _make


@pytest.fixture
def auth_headers(make_token: Callable[..., str]) -> Callable[..., dict[str, str]]:
    """Authorization headers for a role."""

    def _headers(role: UserRole, user_id: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(role, user_id)}"}

    return _headers
