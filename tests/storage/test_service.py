"""Tests for upload validation, local storage and the upload rate limit."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import redis.asyncio as redis

from src.config.settings import Settings
from src.core.exceptions import RateLimitExceededError
from src.storage.service import (
    FileContentMismatchError,
    FileTooLargeError,
    FirebaseStorageService,
    InvalidContentTypeError,
    LocalStorageService,
    UploadRateLimiter,
    create_storage_service,
)


PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PDF = b"%PDF-1.7\n" + b"\x00" * 64


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        upload_dir=str(tmp_path),
        upload_base_url="/uploads",
        upload_max_file_size_mb=1,
        storage_backend="local",
    )


@pytest.fixture
def storage(settings: Settings) -> LocalStorageService:
    return LocalStorageService(settings)


def _stored_files(root: Path) -> list[Path]:
    return [p for p in root.rglob("*") if p.is_file()]


class TestValidation:
    """Tests for checks that run before a file is written."""

    @pytest.mark.asyncio
    async def test_size_ceiling_checked_before_write(
        self, storage: LocalStorageService, tmp_path: Path
    ) -> None:
        content = b"%PDF-" + b"\x00" * (1024 * 1024)

        with pytest.raises(FileTooLargeError) as exc_info:
            await storage.upload(content, "application/pdf", "materials")

        assert exc_info.value.status_code == 413
        assert _stored_files(tmp_path) == []

    @pytest.mark.asyncio
    async def test_disallowed_type(
        self, storage: LocalStorageService, tmp_path: Path
    ) -> None:
        with pytest.raises(InvalidContentTypeError) as exc_info:
            await storage.upload(b"MZ\x90\x00" * 4, "application/x-msdownload", "x")

        assert exc_info.value.status_code == 415
        assert _stored_files(tmp_path) == []

    @pytest.mark.asyncio
    async def test_pdf_must_be_pdf(self, storage: LocalStorageService) -> None:
        with pytest.raises(FileContentMismatchError):
            await storage.upload(PNG, "application/pdf", "materials")

    def test_image_type_follows_content(self, storage: LocalStorageService) -> None:
        """A JPEG declared as PNG is stored as JPEG."""
        actual = storage.validate(JPEG, "image/png", ["image/png", "image/jpeg"])
        assert actual == "image/jpeg"

    def test_declared_type_parameters_ignored(
        self, storage: LocalStorageService
    ) -> None:
        actual = storage.validate(PDF, "Application/PDF; charset=binary", ["application/pdf"])
        assert actual == "application/pdf"

    def test_unsniffed_type_trusted(self, storage: LocalStorageService) -> None:
        assert storage.validate(b"\x00" * 16, "video/mp4", ["video/mp4"]) == "video/mp4"


class TestLocalStorage:
    """Tests for LocalStorageService writes."""

    @pytest.mark.asyncio
    async def test_upload_writes_file(
        self, storage: LocalStorageService, tmp_path: Path
    ) -> None:
        stored = await storage.upload(PDF, "application/pdf", "materials", "notes.pdf")

        assert stored.path.startswith("materials/")
        assert stored.path.endswith(".pdf")
        assert stored.url == f"/uploads/{stored.path}"
        assert stored.filename == "notes.pdf"
        assert stored.size == len(PDF)
        assert (tmp_path / stored.path).read_bytes() == PDF

    @pytest.mark.asyncio
    async def test_image_allow_list(self, storage: LocalStorageService) -> None:
        with pytest.raises(InvalidContentTypeError):
            await storage.upload(
                PDF, "application/pdf", "images", allowed_types=["image/png"]
            )

    def test_unknown_extension_from_filename(
        self, storage: LocalStorageService
    ) -> None:
        path = storage.build_path("resources", "text/plain", "Readme.TXT")
        assert path.startswith("resources/")
        assert path.endswith(".txt")


class TestBackendSelection:
    """Tests for create_storage_service."""

    def test_local_by_default(self, settings: Settings) -> None:
        assert isinstance(create_storage_service(settings), LocalStorageService)

    def test_firebase_without_credentials_not_configured(
        self, settings: Settings
    ) -> None:
        settings.storage_backend = "firebase"
        service = create_storage_service(settings)

        assert isinstance(service, FirebaseStorageService)
        assert service.is_configured is False


class TestUploadRateLimiter:
    """Tests for UploadRateLimiter."""

    @staticmethod
    def _redis(count: int | None = None, error: Exception | None = None) -> MagicMock:
        pipe = MagicMock()
        pipe.execute = AsyncMock(return_value=[count, True], side_effect=error)
        client = MagicMock()
        client.pipeline.return_value.__aenter__.return_value = pipe
        return client

    @pytest.mark.asyncio
    async def test_without_redis_never_limits(self) -> None:
        limiter = UploadRateLimiter(None, limit_per_minute=1)
        for _ in range(5):
            await limiter.check(uuid4())

    @pytest.mark.asyncio
    async def test_under_limit(self) -> None:
        limiter = UploadRateLimiter(self._redis(count=30), limit_per_minute=30)
        await limiter.check(uuid4())

    @pytest.mark.asyncio
    async def test_over_limit(self) -> None:
        limiter = UploadRateLimiter(self._redis(count=31), limit_per_minute=30)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.check(uuid4())

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_redis_error_does_not_block_uploads(self) -> None:
        limiter = UploadRateLimiter(
            self._redis(error=redis.ConnectionError("down")), limit_per_minute=1
        )
        await limiter.check(uuid4())
