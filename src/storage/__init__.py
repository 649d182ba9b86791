"""File storage for uploads (local disk or Firebase Storage)."""

from src.storage.service import (
    FileContentMismatchError,
    FileTooLargeError,
    FirebaseStorageService,
    InvalidContentTypeError,
    LocalStorageService,
    StorageError,
    StorageNotConfiguredError,
    StorageService,
    StorageUploadError,
    StoredFile,
    UploadRateLimiter,
    create_storage_service,
)


__all__ = [
    "FileContentMismatchError",
    "FileTooLargeError",
    "FirebaseStorageService",
    "InvalidContentTypeError",
    "LocalStorageService",
    "StorageError",
    "StorageNotConfiguredError",
    "StorageService",
    "StorageUploadError",
    "StoredFile",
    "UploadRateLimiter",
    "create_storage_service",
]
