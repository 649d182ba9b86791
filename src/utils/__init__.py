"""Utility modules for the Learnhub API."""

from src.utils.magic_bytes import detect_content_type, validate_content_type


__all__ = ["detect_content_type", "validate_content_type"]
