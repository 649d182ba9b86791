"""Authenticated access to locally stored uploads.

Lesson videos, PDFs and materials written by ``LocalStorageService`` are only
served to signed-in users. Single byte ranges are honoured so video players
can seek.
"""

import asyncio
import mimetypes
import re
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Annotated, BinaryIO

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from fastapi.responses import FileResponse, StreamingResponse

from src.auth.dependencies import CurrentUser
from src.config import get_settings


logger = structlog.get_logger(__name__)

router = APIRouter(tags=["files"])

CHUNK_SIZE = 1024 * 1024
RANGE_PATTERN = re.compile(r"^bytes=(\d*)-(\d*)$")


class RangeNotSatisfiableError(ValueError):
    """Requested range lies outside the file."""


def get_upload_root() -> Path:
    """Directory local uploads are written to."""
    return Path(get_settings().upload_dir)


UploadRootDep = Annotated[Path, Depends(get_upload_root)]


def resolve_upload_path(root: Path, file_path: str) -> Path:
    """Map a URL path onto a file below ``root``.

    Raises:
        HTTPException: 404 for paths escaping ``root`` or missing files
    """
    base = root.resolve()
    target = (base / file_path).resolve()
    if not target.is_relative_to(base) or not target.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return target


def parse_range(header: str | None, size: int) -> tuple[int, int] | None:
    """First byte range of a ``Range`` header as inclusive offsets.

    Returns None when the whole file should be sent (no header, or one this
    parser does not understand).

    Raises:
        RangeNotSatisfiableError: If the range starts past the end of the file
    """
    if not header:
        return None
    match = RANGE_PATTERN.match(header.split(",")[0].strip())
    if not match:
        return None

    start_text, end_text = match.groups()
    if not start_text and not end_text:
        return None
    if not start_text:
        # Suffix range: the last N bytes
        length = int(end_text)
        if length == 0 or size == 0:
            raise RangeNotSatisfiableError
        return max(size - length, 0), size - 1

    start = int(start_text)
    end = min(int(end_text), size - 1) if end_text else size - 1
    if start >= size or start > end:
        raise RangeNotSatisfiableError
    return start, end


def _read_chunk(handle: BinaryIO, size: int) -> bytes:
    return handle.read(size)


async def _iter_range(path: Path, start: int, end: int) -> AsyncIterator[bytes]:
    remaining = end - start + 1
    with path.open("rb") as handle:
        handle.seek(start)
        while remaining > 0:
            chunk = await asyncio.to_thread(_read_chunk, handle, min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


@router.get(
    "/{file_path:path}",
    summary="Download an uploaded file",
    responses={206: {"description": "Partial content"}, 416: {"description": "Bad range"}},
)
async def get_uploaded_file(
    file_path: str,
    root: UploadRootDep,
    user: CurrentUser,
    range_header: Annotated[str | None, Header(alias="Range")] = None,
) -> Response:
    """Stream an upload to an authenticated user."""
    target = resolve_upload_path(root, file_path)
    size = target.stat().st_size
    media_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"

    try:
        byte_range = parse_range(range_header, size)
    except RangeNotSatisfiableError:
        return Response(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            headers={"Content-Range": f"bytes */{size}"},
        )

    logger.debug(
        "upload_served",
        file_path=file_path,
        user_id=str(user.id),
        partial=byte_range is not None,
    )

    if byte_range is None:
        return FileResponse(
            target,
            media_type=media_type,
            headers={"Accept-Ranges": "bytes", "Content-Disposition": "inline"},
        )

    start, end = byte_range
    return StreamingResponse(
        _iter_range(target, start, end),
        status_code=status.HTTP_206_PARTIAL_CONTENT,
        media_type=media_type,
        headers={
            "Accept-Ranges": "bytes",
            "Content-Range": f"bytes {start}-{end}/{size}",
            "Content-Length": str(end - start + 1),
            "Content-Disposition": "inline",
        },
    )
