"""Magic bytes detection for upload validation.

Compares the leading bytes of an upload against the declared Content-Type so a
file cannot be disguised as an image, document or media file.
"""

from typing import NamedTuple


MIN_BYTES_FOR_DETECTION = 4
WEBP_HEADER_LENGTH = 12
FTYP_OFFSET = 4


class MagicSignature(NamedTuple):
    """Magic bytes signature for a file type."""

    bytes_pattern: bytes
    mime_type: str
    offset: int = 0


# Reference: https://en.wikipedia.org/wiki/List_of_file_signatures
MAGIC_SIGNATURES: list[MagicSignature] = [
    MagicSignature(b"\xff\xd8\xff", "image/jpeg"),
    MagicSignature(b"\x89PNG\r\n\x1a\n", "image/png"),
    MagicSignature(b"GIF87a", "image/gif"),
    MagicSignature(b"GIF89a", "image/gif"),
    MagicSignature(b"%PDF-", "application/pdf"),
    MagicSignature(b"ID3", "audio/mpeg"),
    MagicSignature(b"\xff\xfb", "audio/mpeg"),
    MagicSignature(b"\xff\xf3", "audio/mpeg"),
    MagicSignature(b"\xff\xf2", "audio/mpeg"),
    # ISO base media brands checked before the generic mp4 fallback
    MagicSignature(b"ftypavif", "image/avif", offset=FTYP_OFFSET),
    MagicSignature(b"ftypheic", "image/heic", offset=FTYP_OFFSET),
    MagicSignature(b"ftypmif1", "image/heic", offset=FTYP_OFFSET),
    MagicSignature(b"ftypqt", "video/quicktime", offset=FTYP_OFFSET),
    MagicSignature(b"ftyp", "video/mp4", offset=FTYP_OFFSET),
]


def detect_content_type(data: bytes) -> str | None:
    """Detect content type from file magic bytes.

    Args:
        data: First 64+ bytes of file content.

    Returns:
        Detected MIME type or None if unknown.
    """
    if len(data) < MIN_BYTES_FOR_DETECTION:
        return None

    # RIFF container: WEBP at offset 8
    if data[:4] == b"RIFF":
        if len(data) >= WEBP_HEADER_LENGTH and data[8:12] == b"WEBP":
            return "image/webp"
        return None

    for sig in MAGIC_SIGNATURES:
        if sig.offset > 0:
            end_offset = sig.offset + len(sig.bytes_pattern)
            if (
                len(data) >= end_offset
                and data[sig.offset : end_offset] == sig.bytes_pattern
            ):
                return sig.mime_type
        elif data.startswith(sig.bytes_pattern):
            return sig.mime_type

    return None


def validate_content_type(
    data: bytes,
    declared_type: str | None,
    *,
    strict: bool = False,
    allowed_types: frozenset[str] | None = None,
) -> tuple[bool, str | None, str | None]:
    """Validate file content against declared Content-Type.

    Args:
        data: First 64+ bytes of file content.
        declared_type: Content-Type header value.
        strict: If True, requires exact MIME type match.
                If False, allows compatible types within same media class.
        allowed_types: Set of allowed MIME types. None = allow all detected.

    Returns:
        Tuple of (is_valid, detected_type, error_message).
    """
    detected_type = detect_content_type(data)

    if detected_type is None:
        return (False, None, "Unable to detect file type from content")

    if allowed_types is not None and detected_type not in allowed_types:
        return (
            False,
            detected_type,
            f"File type '{detected_type}' is not allowed. "
            f"Allowed: {', '.join(sorted(allowed_types))}",
        )

    if not declared_type:
        return (True, detected_type, None)

    declared_base = declared_type.split(";")[0].strip().lower()

    if strict:
        if detected_type != declared_base:
            return (
                False,
                detected_type,
                f"Content-Type mismatch: declared '{declared_base}', "
                f"detected '{detected_type}'",
            )
        return (True, detected_type, None)

    detected_class = detected_type.split("/")[0]
    declared_class = declared_base.split("/")[0]

    if detected_class != declared_class:
        return (
            False,
            detected_type,
            f"Media class mismatch: declared '{declared_class}', "
            f"detected '{detected_class}'",
        )

    return (True, detected_type, None)
