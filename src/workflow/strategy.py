"""Per-kind persistence strategy used by the approval workflow.

The workflow engine knows nothing about tables. Each content kind supplies a
store that persists the entity and keeps the parent's denormalized state
(counter, ordered child list, lookup rows) in step with it.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from src.workflow.models import ApprovalStatus, ContentEntity, ContentKind


class ContentKindStore(ABC):
    """Storage operations the workflow engine needs for one content kind."""

    kind: ContentKind

    @abstractmethod
    async def get(self, entity_id: UUID) -> ContentEntity | None:
        """Load an entity, or None when it does not exist."""

    @abstractmethod
    async def insert(self, entity: ContentEntity) -> None:
        """Persist a new entity and its lookup rows."""

    @abstractmethod
    async def save(self, entity: ContentEntity) -> None:
        """Persist the full current state of an existing entity."""

    @abstractmethod
    async def remove(self, entity: ContentEntity) -> None:
        """Delete the entity and its lookup rows."""

    async def assign_position(self, entity: ContentEntity) -> int | None:
        """Claim the next free ordering key under the parent.

        Unordered kinds return None.
        """
        return None

    @abstractmethod
    async def attach_to_parent(self, entity: ContentEntity) -> None:
        """Increment the parent counter and append to its child list."""

    @abstractmethod
    async def detach_from_parent(self, entity: ContentEntity) -> None:
        """Decrement the parent counter and drop from its child list."""

    async def on_status_change(
        self, entity: ContentEntity, previous: ApprovalStatus
    ) -> None:
        """Update status-keyed lookups after a transition."""
        return None
