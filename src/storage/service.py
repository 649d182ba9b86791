"""File storage for uploads.

Stores editor images, lesson resources and material files with:
- A byte-size ceiling checked before any destination is allocated
- Content-type allow lists and magic bytes validation
- Local disk or Firebase Storage backends
- A per-user upload rate limit backed by Redis
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import quote
from uuid import UUID, uuid4

import redis.asyncio as redis
import structlog
from fastapi import status

from src.config.settings import Settings
from src.core.exceptions import AppError, RateLimitExceededError, ValidationFailedError
from src.core.redis import upload_rate_key
from src.utils.magic_bytes import validate_content_type
from src.utils.time import utcnow


if TYPE_CHECKING:
    from google.cloud.storage import Bucket

logger = structlog.get_logger(__name__)

MAGIC_BYTES_PREFIX = 64
RATE_WINDOW_SECONDS = 60

# Types whose content is checked against magic bytes
SNIFFED_TYPES = frozenset(
    {"image/jpeg", "image/png", "image/webp", "application/pdf"}
)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class StorageError(AppError):
    """Storage backend failure."""

    def __init__(self, message: str, code: str = "storage_error") -> None:
        super().__init__(message, code)


class StorageNotConfiguredError(StorageError):
    """Firebase Storage selected but not configured."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "File storage is not configured") -> None:
        super().__init__(message, "storage_not_configured")


class StorageUploadError(StorageError):
    """Writing the file failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "upload_error")


class FileTooLargeError(ValidationFailedError):
    """File exceeds the size ceiling."""

    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE

    def __init__(self, size: int, max_size: int) -> None:
        message = (
            f"File size ({size / 1024 / 1024:.2f} MB) exceeds "
            f"maximum allowed ({max_size / 1024 / 1024:.2f} MB)"
        )
        super().__init__(message, "file_too_large")


class InvalidContentTypeError(ValidationFailedError):
    """Content type is not allowed."""

    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE

    def __init__(self, content_type: str, allowed: list[str]) -> None:
        message = (
            f"Content type '{content_type}' is not allowed. "
            f"Allowed: {', '.join(allowed)}"
        )
        super().__init__(message, "invalid_content_type")


class FileContentMismatchError(ValidationFailedError):
    """File bytes do not match the declared type."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "content_mismatch")


# ==============================================================================
# Result
# ==============================================================================


@dataclass
class StoredFile:
    """A file written by a storage backend."""

    url: str
    path: str
    size: int
    content_type: str
    filename: str
    uploaded_at: datetime = field(default_factory=utcnow)


# ==============================================================================
# Storage Services
# ==============================================================================


class StorageService:
    """Validation and path building shared by all backends."""

    EXTENSION_MAP: dict[str, str] = {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "image/webp": ".webp",
        "application/pdf": ".pdf",
        "audio/mpeg": ".mp3",
        "video/mp4": ".mp4",
    }

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def max_file_size(self) -> int:
        """Maximum file size in bytes."""
        return self.settings.upload_max_file_size_bytes

    @property
    def is_configured(self) -> bool:
        return True

    def validate(self, content: bytes, content_type: str, allowed: list[str]) -> str:
        """Check an upload before it is written.

        Returns:
            The content type to store with the file.

        Raises:
            FileTooLargeError: If the file exceeds the ceiling.
            InvalidContentTypeError: If the declared type is not allowed.
            FileContentMismatchError: If magic bytes contradict the declared type.
        """
        size = len(content)
        if size > self.max_file_size:
            raise FileTooLargeError(size, self.max_file_size)

        declared = content_type.split(";")[0].strip().lower()
        if declared not in allowed:
            raise InvalidContentTypeError(declared, allowed)

        if declared not in SNIFFED_TYPES:
            return declared

        is_valid, detected_type, error_msg = validate_content_type(
            content[:MAGIC_BYTES_PREFIX],
            declared,
            strict=declared == "application/pdf",
            allowed_types=frozenset(allowed),
        )
        if not is_valid:
            logger.warning(
                "magic_bytes_validation_failed",
                declared_type=declared,
                detected_type=detected_type,
                error=error_msg,
            )
            raise FileContentMismatchError(error_msg or "Invalid file content")

        return detected_type or declared

    def build_path(
        self, folder: str, content_type: str, filename: str | None = None
    ) -> str:
        """Build a unique storage path.

        Format: {folder}/{uuid}{ext}
        """
        ext = self.EXTENSION_MAP.get(content_type, "")
        if not ext and filename:
            ext = Path(filename).suffix.lower()
        return f"{folder.strip('/')}/{uuid4().hex}{ext}"

    async def upload(
        self,
        content: bytes,
        content_type: str,
        folder: str,
        filename: str | None = None,
        allowed_types: list[str] | None = None,
    ) -> StoredFile:
        """Validate and store a file.

        Args:
            content: File content as bytes.
            content_type: Declared Content-Type.
            folder: Logical folder (``images``, ``resources``, ``materials``).
            filename: Original filename, kept for downloads.
            allowed_types: Allow list; defaults to the resource/material list.
        """
        allowed = allowed_types or self.settings.upload_allowed_file_types
        actual_type = self.validate(content, content_type, allowed)
        storage_path = self.build_path(folder, actual_type, filename)

        url = await self._write(storage_path, content, actual_type, filename)

        logger.info(
            "file_uploaded",
            storage_path=storage_path,
            content_type=actual_type,
            file_size=len(content),
        )
        return StoredFile(
            url=url,
            path=storage_path,
            size=len(content),
            content_type=actual_type,
            filename=filename or Path(storage_path).name,
        )

    async def _write(
        self, storage_path: str, content: bytes, content_type: str, filename: str | None
    ) -> str:
        raise NotImplementedError


class LocalStorageService(StorageService):
    """Writes uploads below ``upload_dir`` and serves them from ``upload_base_url``."""

    @property
    def root(self) -> Path:
        return Path(self.settings.upload_dir)

    async def _write(
        self, storage_path: str, content: bytes, content_type: str, filename: str | None
    ) -> str:
        target = self.root / storage_path
        try:
            await asyncio.to_thread(_write_file, target, content)
        except OSError as e:
            logger.exception("upload_failed", storage_path=storage_path, error=str(e))
            raise StorageUploadError(f"Failed to store file: {e}") from e
        return f"{self.settings.upload_base_url.rstrip('/')}/{storage_path}"


def _write_file(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)


# Firebase app singleton
_firebase_app = None
_storage_bucket: "Bucket | None" = None


def _init_firebase(settings: Settings) -> "Bucket":
    """Initialize Firebase Admin SDK and get the storage bucket.

    Raises:
        StorageNotConfiguredError: If Firebase is not configured.
    """
    global _firebase_app, _storage_bucket  # noqa: PLW0603

    if _storage_bucket is not None:
        return _storage_bucket

    if not settings.firebase_configured:
        raise StorageNotConfiguredError

    # Lazy import to avoid loading Firebase SDK unless needed
    import firebase_admin  # noqa: PLC0415
    from firebase_admin import credentials, storage  # noqa: PLC0415

    creds_path = settings.firebase_credentials_path
    if not creds_path or not Path(creds_path).exists():
        raise StorageNotConfiguredError(
            f"Firebase credentials file not found: {creds_path}"
        )

    try:
        if _firebase_app is None:
            cred = credentials.Certificate(creds_path)
            _firebase_app = firebase_admin.initialize_app(
                cred,
                {
                    "storageBucket": settings.firebase_storage_bucket,
                    "projectId": settings.firebase_project_id,
                },
            )
            logger.info(
                "firebase_initialized",
                project_id=settings.firebase_project_id,
                bucket=settings.firebase_storage_bucket,
            )

        _storage_bucket = storage.bucket()
        return _storage_bucket

    except Exception as e:
        logger.exception("firebase_init_failed", error=str(e))
        raise StorageNotConfiguredError(f"Failed to initialize Firebase: {e}") from e


class FirebaseStorageService(StorageService):
    """Writes uploads to Firebase Storage as public objects."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self._bucket: Bucket | None = None

    @property
    def is_configured(self) -> bool:
        return self.settings.firebase_configured

    def _get_bucket(self) -> "Bucket":
        if self._bucket is None:
            self._bucket = _init_firebase(self.settings)
        return self._bucket

    def _public_url(self, storage_path: str) -> str:
        bucket_name = self.settings.firebase_storage_bucket
        encoded_path = "/".join(
            quote(part, safe="") for part in storage_path.split("/")
        )
        return f"https://storage.googleapis.com/{bucket_name}/{encoded_path}"

    async def _write(
        self, storage_path: str, content: bytes, content_type: str, filename: str | None
    ) -> str:
        bucket = self._get_bucket()
        try:
            blob = bucket.blob(f"learnhub/{storage_path}")
            blob.cache_control = "public, max-age=86400"
            if filename:
                safe_filename = quote(filename, safe="")
                blob.content_disposition = (
                    f"inline; filename*=UTF-8''{safe_filename}"
                )
            await asyncio.to_thread(
                blob.upload_from_string, content, content_type=content_type
            )
            await asyncio.to_thread(blob.make_public)
        except Exception as e:
            logger.exception("upload_failed", storage_path=storage_path, error=str(e))
            raise StorageUploadError(f"Failed to upload file: {e}") from e
        return self._public_url(f"learnhub/{storage_path}")


def create_storage_service(settings: Settings) -> StorageService:
    """Pick the storage backend from settings."""
    if settings.storage_backend == "firebase":
        return FirebaseStorageService(settings)
    return LocalStorageService(settings)


# ==============================================================================
# Rate Limiting
# ==============================================================================


class UploadRateLimiter:
    """Fixed one-minute window per user, counted in Redis."""

    def __init__(self, redis_client: redis.Redis | None, limit_per_minute: int) -> None:
        self.redis = redis_client
        self.limit = limit_per_minute

    async def check(self, user_id: UUID) -> None:
        """Count an upload attempt.

        Raises:
            RateLimitExceededError: If the user exceeded the window limit.
        """
        if self.redis is None:
            return

        key = upload_rate_key(str(user_id))
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, RATE_WINDOW_SECONDS, nx=True)
                count, _ = await pipe.execute()
        except redis.RedisError as e:
            logger.warning("upload_rate_limit_unavailable", error=str(e))
            return

        if count > self.limit:
            logger.warning("upload_rate_limited", user_id=str(user_id), count=count)
            raise RateLimitExceededError(
                f"Upload limit of {self.limit} per minute exceeded"
            )
