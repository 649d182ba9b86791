"""Tests for serving local uploads to signed-in users."""

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.main import app
from src.storage.router import (
    RangeNotSatisfiableError,
    get_upload_root,
    parse_range,
)


CONTENT = bytes(range(256)) * 4


@pytest.fixture
def upload_root(tmp_path: Path) -> Iterator[Path]:
    root = tmp_path / "uploads"
    (root / "resources").mkdir(parents=True)
    (root / "resources" / "lecture.mp4").write_bytes(CONTENT)
    (tmp_path / "secret.txt").write_text("outside")
    app.dependency_overrides[get_upload_root] = lambda: root
    yield root
    app.dependency_overrides.pop(get_upload_root, None)


class TestParseRange:
    @pytest.mark.parametrize(
        "header,expected",
        [
            (None, None),
            ("bytes=0-99", (0, 99)),
            ("bytes=1000-", (1000, 1023)),
            ("bytes=-24", (1000, 1023)),
            ("bytes=0-5000", (0, 1023)),
            ("bytes=0-9, 20-29", (0, 9)),
            ("items=0-9", None),
        ],
    )
    def test_parse(self, header: str | None, expected) -> None:
        assert parse_range(header, 1024) == expected

    @pytest.mark.parametrize("header", ["bytes=1024-", "bytes=10-5", "bytes=-0"])
    def test_unsatisfiable(self, header: str) -> None:
        with pytest.raises(RangeNotSatisfiableError):
            parse_range(header, 1024)


class TestGetUploadedFile:
    def test_requires_authentication(self, client: TestClient, upload_root) -> None:
        response = client.get("/uploads/resources/lecture.mp4")
        assert response.status_code == 401

    def test_full_file(
        self, client: TestClient, upload_root, auth_headers: Callable
    ) -> None:
        response = client.get(
            "/uploads/resources/lecture.mp4", headers=auth_headers(UserRole.STUDENT)
        )

        assert response.status_code == 200
        assert response.content == CONTENT
        assert response.headers["content-type"] == "video/mp4"
        assert response.headers["accept-ranges"] == "bytes"

    def test_byte_range(
        self, client: TestClient, upload_root, auth_headers: Callable
    ) -> None:
        headers = {**auth_headers(UserRole.STUDENT), "Range": "bytes=10-19"}

        response = client.get("/uploads/resources/lecture.mp4", headers=headers)

        assert response.status_code == 206
        assert response.content == CONTENT[10:20]
        assert response.headers["content-range"] == f"bytes 10-19/{len(CONTENT)}"

    def test_range_past_end(
        self, client: TestClient, upload_root, auth_headers: Callable
    ) -> None:
        headers = {**auth_headers(UserRole.STUDENT), "Range": "bytes=5000-"}

        response = client.get("/uploads/resources/lecture.mp4", headers=headers)

        assert response.status_code == 416
        assert response.headers["content-range"] == f"bytes */{len(CONTENT)}"

    @pytest.mark.parametrize(
        "path", ["/uploads/resources/missing.pdf", "/uploads/..%2Fsecret.txt"]
    )
    def test_missing_or_outside_root(
        self, client: TestClient, upload_root, auth_headers: Callable, path: str
    ) -> None:
        response = client.get(path, headers=auth_headers(UserRole.STAFF))
        assert response.status_code == 404
