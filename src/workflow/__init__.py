"""Approval workflow shared by lessons, modules, materials and exams."""

from src.workflow.engine import ALLOWED_SOURCES, ApprovalWorkflow
from src.workflow.models import (
    Actor,
    ApprovalStatus,
    ContentEntity,
    ContentKind,
    VersionHistory,
    VersionSnapshot,
)
from src.workflow.strategy import ContentKindStore


__all__ = [
    "ALLOWED_SOURCES",
    "Actor",
    "ApprovalStatus",
    "ApprovalWorkflow",
    "ContentEntity",
    "ContentKind",
    "ContentKindStore",
    "VersionHistory",
    "VersionSnapshot",
]
