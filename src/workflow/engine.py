"""Approval workflow engine.

One state machine drives every content kind:

    create     -> draft
    submit     draft, rejected           -> pending   (payload must be non-empty)
    approve    any state                 -> approved  (admin; re-approving refreshes remarks)
    reject     any state                 -> rejected  (admin, reason >= 10 chars)
    unpublish  approved                  -> pending   (admin)
    edit       any state; owners cannot edit approved content
    delete     any state; owners cannot delete approved content

Every guard runs before the first write. The entity write and the parent
bookkeeping (counter, child list) are separate writes; when the second one
fails the error is logged and raised as ``ParentBookkeepingError`` so the
course recount job can repair the counters.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from src.core.exceptions import (
    AppError,
    AuthorizationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationFailedError,
)
from src.utils.time import utcnow
from src.workflow.models import (
    DEFAULT_HISTORY_LIMIT,
    Actor,
    ApprovalStatus,
    ContentEntity,
    ContentKind,
    VersionHistory,
    VersionSnapshot,
)
from src.workflow.strategy import ContentKindStore


logger = structlog.get_logger(__name__)

DEFAULT_REASON_MIN_LENGTH = 10

ALLOWED_SOURCES: dict[str, frozenset[ApprovalStatus]] = {
    "submit": frozenset({ApprovalStatus.DRAFT, ApprovalStatus.REJECTED}),
    "approve": frozenset(ApprovalStatus),
    "reject": frozenset(ApprovalStatus),
    "unpublish": frozenset({ApprovalStatus.APPROVED}),
}


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ContentNotFoundError(NotFoundError):
    """Content entity does not exist."""

    def __init__(self, kind: ContentKind):
        super().__init__(f"{kind.label} not found", f"{kind.value}_not_found")


class NotContentOwnerError(AuthorizationError):
    """Actor neither owns the entity nor is an admin."""

    def __init__(self, message: str = "Only the owner or an admin can do this"):
        super().__init__(message, "not_owner")


class ApprovedContentLockedError(AuthorizationError):
    """Non-admins cannot change approved content."""

    def __init__(self, message: str = "Approved content can only be changed by an admin"):
        super().__init__(message, "approved_locked")


class InvalidTransitionError(ConflictError):
    """Operation is not allowed from the entity's current state."""

    def __init__(self, operation: str, current: ApprovalStatus):
        super().__init__(
            f"Cannot {operation} content that is {current.value}",
            "invalid_transition",
        )


class EmptyContentError(ValidationFailedError):
    """Submitting content with nothing in it."""

    def __init__(self, message: str = "Content is empty; add content before submitting"):
        super().__init__(message, "empty_content")


class RejectionReasonTooShortError(ValidationFailedError):
    """Correction request without a usable reason."""

    def __init__(self, min_length: int):
        super().__init__(
            f"Reason must be at least {min_length} characters",
            "reason_too_short",
        )


class ParentBookkeepingError(InternalError):
    """Entity was written but the parent's counters or child list were not."""

    def __init__(self, message: str = "Content saved but course totals are out of date"):
        super().__init__(message, "parent_bookkeeping_failed")


# ==============================================================================
# Workflow Engine
# ==============================================================================


class ApprovalWorkflow:
    """Approval state machine over one content kind."""

    def __init__(
        self,
        store: ContentKindStore,
        reason_min_length: int = DEFAULT_REASON_MIN_LENGTH,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.store = store
        self.reason_min_length = reason_min_length
        self.history_limit = history_limit

    @property
    def kind(self) -> ContentKind:
        return self.store.kind

    async def get(self, entity_id: UUID) -> ContentEntity:
        """Load an entity.

        Raises:
            ContentNotFoundError: If it does not exist
        """
        entity = await self.store.get(entity_id)
        if entity is None:
            raise ContentNotFoundError(self.kind)
        return entity

    # ==========================================================================
    # Transitions
    # ==========================================================================

    async def create(self, actor: Actor, entity: ContentEntity) -> ContentEntity:
        """Persist a new entity as draft under its parent."""
        if not actor.can_author:
            raise AuthorizationError("Only staff and admins can create content")

        entity.owner_id = actor.id
        entity.approval_status = ApprovalStatus.DRAFT
        entity.rejection_reason = None
        entity.approved_by = None
        entity.approved_at = None
        entity.version = 1
        entity.previous_versions = VersionHistory(limit=self.history_limit)
        entity.validate()

        now = utcnow()
        entity.created_at = now
        entity.updated_at = now
        entity.sync_publication(now)
        entity.position = await self.store.assign_position(entity)

        await self.store.insert(entity)
        await self._bookkeeping("attach_to_parent", self.store.attach_to_parent, entity)

        logger.info(
            "content_created",
            kind=self.kind.value,
            content_id=str(entity.id),
            parent_id=str(entity.parent_id),
            position=entity.position,
        )
        return entity

    async def submit(self, actor: Actor, entity_id: UUID) -> ContentEntity:
        """Send content for review."""
        entity = await self.get(entity_id)
        self._require_owner_or_admin(actor, entity)
        self._require_source("submit", entity)
        if not entity.has_content():
            raise EmptyContentError

        return await self._transition(entity, ApprovalStatus.PENDING, actor)

    async def approve(
        self, actor: Actor, entity_id: UUID, remarks: str | None = None
    ) -> ContentEntity:
        """Approve and publish content."""
        self._require_admin(actor)
        entity = await self.get(entity_id)
        self._require_source("approve", entity)

        now = utcnow()
        entity.admin_remarks = (remarks or "").strip() or None
        entity.approved_by = actor.id
        entity.approved_at = now
        return await self._transition(entity, ApprovalStatus.APPROVED, actor, now)

    async def reject(self, actor: Actor, entity_id: UUID, reason: str) -> ContentEntity:
        """Request corrections from the owner."""
        self._require_admin(actor)
        entity = await self.get(entity_id)
        self._require_source("reject", entity)

        reason = (reason or "").strip()
        if len(reason) < self.reason_min_length:
            raise RejectionReasonTooShortError(self.reason_min_length)

        entity.rejection_reason = reason
        entity.admin_remarks = reason
        return await self._transition(entity, ApprovalStatus.REJECTED, actor)

    async def unpublish(self, actor: Actor, entity_id: UUID) -> ContentEntity:
        """Take approved content offline and back to review."""
        self._require_admin(actor)
        entity = await self.get(entity_id)
        self._require_source("unpublish", entity)

        return await self._transition(entity, ApprovalStatus.PENDING, actor)

    async def edit(
        self, actor: Actor, entity_id: UUID, changes: dict[str, Any]
    ) -> ContentEntity:
        """Apply field changes.

        A changed payload archives the previous non-empty payload and bumps
        the version. When a non-admin changes the payload, the entity goes
        back to pending review.
        """
        entity = await self.get(entity_id)
        self._require_owner_or_admin(actor, entity)
        if not actor.is_admin and entity.approval_status == ApprovalStatus.APPROVED:
            raise ApprovedContentLockedError

        updated = entity.clone()
        updated.previous_versions = VersionHistory(
            updated.previous_versions, limit=self.history_limit
        )
        updated.apply_changes(changes)
        updated.validate()

        now = utcnow()
        previous_payload = entity.payload
        if updated.payload != previous_payload:
            if entity.has_content():
                updated.previous_versions.archive(
                    VersionSnapshot(
                        payload=previous_payload,
                        version=entity.version,
                        saved_at=now,
                        saved_by=actor.id,
                    )
                )
                updated.version = entity.version + 1
            if (
                not actor.is_admin
                and updated.has_content()
                and updated.approval_status != ApprovalStatus.PENDING
            ):
                return await self._transition(
                    updated, ApprovalStatus.PENDING, actor, now, event="content_edited"
                )

        updated.updated_at = now
        updated.sync_publication(now)
        await self.store.save(updated)
        logger.info(
            "content_edited",
            kind=self.kind.value,
            content_id=str(updated.id),
            version=updated.version,
            fields=sorted(changes),
        )
        return updated

    async def delete(self, actor: Actor, entity_id: UUID) -> ContentEntity:
        """Delete content and detach it from its parent."""
        entity = await self.get(entity_id)
        self._require_owner_or_admin(actor, entity)
        if not actor.is_admin and entity.approval_status == ApprovalStatus.APPROVED:
            raise ApprovedContentLockedError

        await self.store.remove(entity)
        await self._bookkeeping(
            "detach_from_parent", self.store.detach_from_parent, entity
        )
        logger.info(
            "content_deleted",
            kind=self.kind.value,
            content_id=str(entity.id),
            parent_id=str(entity.parent_id),
        )
        return entity

    # ==========================================================================
    # Internals
    # ==========================================================================

    async def _transition(
        self,
        entity: ContentEntity,
        target: ApprovalStatus,
        actor: Actor,
        now: datetime | None = None,
        event: str = "content_status_changed",
    ) -> ContentEntity:
        previous = entity.approval_status
        now = now or utcnow()

        if previous == ApprovalStatus.REJECTED and target != ApprovalStatus.REJECTED:
            entity.rejection_reason = None
        if previous == ApprovalStatus.APPROVED and target != ApprovalStatus.APPROVED:
            entity.approved_by = None
            entity.approved_at = None

        entity.approval_status = target
        entity.updated_at = now
        entity.sync_publication(now)

        await self.store.save(entity)
        if previous != target:
            await self._bookkeeping(
                "on_status_change", self.store.on_status_change, entity, previous
            )

        logger.info(
            event,
            kind=self.kind.value,
            content_id=str(entity.id),
            from_status=previous.value,
            to_status=target.value,
            actor_id=str(actor.id),
        )
        return entity

    async def _bookkeeping(
        self,
        step: str,
        operation: Callable[..., Awaitable[None]],
        entity: ContentEntity,
        *args: Any,
    ) -> None:
        try:
            await operation(entity, *args)
        except AppError:
            raise
        except Exception as e:
            logger.exception(
                "parent_bookkeeping_failed",
                kind=self.kind.value,
                content_id=str(entity.id),
                parent_id=str(entity.parent_id),
                step=step,
                error=str(e),
            )
            raise ParentBookkeepingError from e

    def _require_admin(self, actor: Actor) -> None:
        if not actor.is_admin:
            raise AuthorizationError("Only admins can review content")

    def _require_owner_or_admin(self, actor: Actor, entity: ContentEntity) -> None:
        if not (actor.is_admin or actor.owns(entity)):
            raise NotContentOwnerError

    def _require_source(self, operation: str, entity: ContentEntity) -> None:
        if entity.approval_status not in ALLOWED_SOURCES[operation]:
            raise InvalidTransitionError(operation, entity.approval_status)
