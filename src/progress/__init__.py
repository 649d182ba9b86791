"""Student progress: time per module and course completion."""

from src.progress.models import (
    PROGRESS_TABLES_CQL,
    ModuleProgress,
    ProgressRecord,
    completion_threshold_seconds,
    compute_percent,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "ModuleProgress",
    "ProgressRecord",
    "completion_threshold_seconds",
    "compute_percent",
]
