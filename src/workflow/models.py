"""Approval lifecycle shared by every content kind.

A content entity (lesson, module, material, exam) is authored by staff and
reviewed by an admin before students can see it. This module holds the state
and bookkeeping every kind carries; the kind-specific payload lives in the
subclasses in ``src.content.models``.
"""

import copy
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID, uuid4

from src.auth.permissions import UserRole, can_author_content, is_admin
from src.core.exceptions import ValidationFailedError
from src.utils.time import ensure_utc_aware, utcnow


DEFAULT_HISTORY_LIMIT = 10


class ApprovalStatus(str, Enum):
    """Review state of a content entity."""

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ContentKind(str, Enum):
    """Content kinds that go through approval."""

    LESSON = "lesson"
    MODULE = "module"
    MATERIAL = "material"
    EXAM = "exam"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class Actor:
    """Who is performing a workflow operation."""

    id: UUID
    role: UserRole

    @classmethod
    def from_user(cls, user: Any) -> "Actor":
        return cls(id=UUID(str(user.id)), role=UserRole(user.role))

    @property
    def is_admin(self) -> bool:
        return is_admin(self.role)

    @property
    def can_author(self) -> bool:
        return can_author_content(self.role)

    def owns(self, entity: "ContentEntity") -> bool:
        return entity.owner_id == self.id


# ==============================================================================
# Version History
# ==============================================================================


class VersionSnapshot:
    """An archived payload, taken just before an edit replaced it."""

    def __init__(
        self,
        payload: dict[str, Any],
        version: int,
        saved_at: datetime | None = None,
        saved_by: UUID | None = None,
    ):
        self.payload = payload
        self.version = version
        self.saved_at = ensure_utc_aware(saved_at) or utcnow()
        self.saved_by = saved_by

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VersionSnapshot":
        saved_at = data.get("saved_at")
        if isinstance(saved_at, str):
            saved_at = datetime.fromisoformat(saved_at)
        saved_by = data.get("saved_by")
        return cls(
            payload=data.get("payload") or {},
            version=int(data.get("version") or 1),
            saved_at=saved_at,
            saved_by=UUID(str(saved_by)) if saved_by else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "payload": self.payload,
            "version": self.version,
            "saved_at": self.saved_at,
            "saved_by": self.saved_by,
        }

    def __repr__(self) -> str:
        return f"<VersionSnapshot v{self.version} at {self.saved_at.isoformat()}>"


class VersionHistory:
    """Fixed-capacity archive of previous payloads, oldest dropped first."""

    def __init__(
        self,
        snapshots: Iterable[VersionSnapshot] = (),
        limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self._snapshots: deque[VersionSnapshot] = deque(snapshots, maxlen=limit)

    @property
    def limit(self) -> int:
        return self._snapshots.maxlen or DEFAULT_HISTORY_LIMIT

    def archive(self, snapshot: VersionSnapshot) -> None:
        self._snapshots.append(snapshot)

    def latest(self) -> VersionSnapshot | None:
        return self._snapshots[-1] if self._snapshots else None

    def __iter__(self) -> Iterator[VersionSnapshot]:
        return iter(self._snapshots)

    def __len__(self) -> int:
        return len(self._snapshots)

    @classmethod
    def from_list(
        cls, items: Iterable[dict[str, Any]] | None, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> "VersionHistory":
        return cls((VersionSnapshot.from_dict(item) for item in items or ()), limit)

    def to_list(self) -> list[dict[str, Any]]:
        return [snapshot.to_dict() for snapshot in self._snapshots]


# ==============================================================================
# Content Entity Base
# ==============================================================================


class ContentEntity:
    """State shared by every content kind.

    Subclasses declare ``kind``, the ``PAYLOAD_FIELDS`` that make up the
    versioned payload, the ``EDITABLE_FIELDS`` an edit may touch, and
    implement ``has_content``.

    Attributes:
        id: Unique identifier
        course_id: Owning course (immutable)
        owner_id: Creator (immutable)
        approval_status: Review state
        rejection_reason: Set only while rejected
        admin_remarks: Free text from the last reviewer
        approved_by, approved_at: Set while approved
        is_published, published_at: Derived from approval_status on persist
        position: Ordering key within the parent, None for unordered kinds
        version: Increments each time a non-empty payload is replaced
        previous_versions: Archive of replaced payloads
    """

    kind: ClassVar[ContentKind]
    PAYLOAD_FIELDS: ClassVar[tuple[str, ...]] = ()
    EDITABLE_FIELDS: ClassVar[frozenset[str]] = frozenset({"title"})

    def __init__(
        self,
        id: UUID | None = None,
        course_id: UUID | None = None,
        owner_id: UUID | None = None,
        title: str = "",
        approval_status: ApprovalStatus | str = ApprovalStatus.DRAFT,
        rejection_reason: str | None = None,
        admin_remarks: str | None = None,
        approved_by: UUID | None = None,
        approved_at: datetime | None = None,
        is_published: bool = False,
        published_at: datetime | None = None,
        position: int | None = None,
        version: int = 1,
        previous_versions: VersionHistory | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.owner_id = owner_id
        self.title = (title or "").strip()
        self.approval_status = ApprovalStatus(approval_status)
        self.rejection_reason = rejection_reason
        self.admin_remarks = admin_remarks
        self.approved_by = approved_by
        self.approved_at = ensure_utc_aware(approved_at)
        self.is_published = bool(is_published)
        self.published_at = ensure_utc_aware(published_at)
        self.position = position
        self.version = version or 1
        self.previous_versions = (
            previous_versions if previous_versions is not None else VersionHistory()
        )
        self.created_at = ensure_utc_aware(created_at) or utcnow()
        self.updated_at = ensure_utc_aware(updated_at)

    @property
    def parent_id(self) -> UUID | None:
        """Entity whose counter and child list track this one."""
        return self.course_id

    @property
    def payload(self) -> dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self.PAYLOAD_FIELDS}

    def has_content(self) -> bool:
        raise NotImplementedError

    def validate(self) -> None:
        """Check structural well-formedness.

        Raises:
            ValidationFailedError: If the entity cannot be persisted as is.
        """
        if not self.title:
            raise ValidationFailedError(f"{self.kind.label} title is required")

    def apply_changes(self, changes: dict[str, Any]) -> None:
        unknown = set(changes) - self.EDITABLE_FIELDS
        if unknown:
            raise ValidationFailedError(
                f"Fields cannot be edited: {', '.join(sorted(unknown))}",
                "field_not_editable",
            )
        for name, value in changes.items():
            setattr(self, name, value.strip() if name == "title" else value)

    def sync_publication(self, now: datetime) -> None:
        """Derive publication state from approval state."""
        self.is_published = self.approval_status == ApprovalStatus.APPROVED
        if self.is_published:
            self.published_at = self.published_at or now
        else:
            self.published_at = None

    def clone(self) -> "ContentEntity":
        return copy.deepcopy(self)

    def workflow_dict(self) -> dict[str, Any]:
        """Fields every kind exposes."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "course_id": self.course_id,
            "owner_id": self.owner_id,
            "title": self.title,
            "approval_status": self.approval_status.value,
            "rejection_reason": self.rejection_reason,
            "admin_remarks": self.admin_remarks,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at,
            "is_published": self.is_published,
            "published_at": self.published_at,
            "position": self.position,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_dict(self) -> dict[str, Any]:
        return {**self.workflow_dict(), **self.payload}

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.title} "
            f"({self.approval_status.value}, v{self.version})>"
        )
