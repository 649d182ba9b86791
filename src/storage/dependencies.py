"""Dependencies for file uploads."""

from typing import Annotated

from fastapi import Depends

from src.auth.dependencies import CurrentUser
from src.config.settings import get_settings
from src.core.exceptions import RateLimitExceededError, to_http_exception
from src.core.redis import get_redis
from src.storage.schemas import StorageErrorResponse
from src.storage.service import UploadRateLimiter


UPLOAD_ERROR_RESPONSES = {
    413: {"model": StorageErrorResponse, "description": "File too large"},
    415: {"model": StorageErrorResponse, "description": "Unsupported media type"},
    429: {"model": StorageErrorResponse, "description": "Upload rate limit exceeded"},
}


def get_upload_rate_limiter() -> UploadRateLimiter:
    return UploadRateLimiter(get_redis(), get_settings().upload_rate_limit_per_minute)


async def enforce_upload_rate_limit(
    user: CurrentUser,
    limiter: Annotated[UploadRateLimiter, Depends(get_upload_rate_limiter)],
) -> None:
    """Reject the request when the user exceeded the upload rate."""
    try:
        await limiter.check(user.id)
    except RateLimitExceededError as e:
        raise to_http_exception(e) from e


UploadRateLimit = Depends(enforce_upload_rate_limit)
