"""Storage abstractions for entity meta data and workflow history."""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional, Protocol

from ..constants import META_WORKFLOW_FAILED_STEP, META_WORKFLOW_STATUS
from ..contracts import EntityKind
from .models import WorkflowInstance


class MetaStore(Protocol):
    """Key/value meta data attached to shop entities."""

    async def get(self, kind: EntityKind, entity_id: int | str, key: str) -> Optional[str]:
        """Return the stored value or ``None``."""

    async def set(
        self, kind: EntityKind, entity_id: int | str, key: str, value: Optional[str]
    ) -> None:
        """Store ``value``; ``None`` deletes the key."""

    async def items(self, kind: EntityKind, entity_id: int | str) -> dict[str, str]:
        """Return every key stored for the entity."""


class WorkflowRepository(Protocol):
    """Protocol for workflow history backends."""

    async def create_workflow(self, workflow_id: str, event: str, entity_id: int | str) -> None:
        """Record that a workflow was scheduled."""

    async def record_attempt(
        self,
        workflow_id: str,
        attempt: int,
        status: str,
        failed_step: Optional[str],
        steps: Mapping[str, tuple[str, Optional[str]]],
        message: Optional[str] = None,
        event: str = "",
        entity_id: int | str = "",
    ) -> None:
        """Record the outcome of one attempt.

        ``steps`` maps step names to ``(status, message)`` in execution order.
        Unknown workflows are created on the fly.
        """

    async def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        """Retrieve the workflow by id."""

    async def list_workflows(self) -> list[WorkflowInstance]:
        """Return all persisted workflows."""

    async def purge_workflows(self, older_than: datetime) -> int:
        """Delete workflows last updated before ``older_than``; return how many."""


class Checkpoint:
    """Per entity resume checkpoint: last terminal status and last failed step."""

    def __init__(self, store: MetaStore, kind: EntityKind) -> None:
        self.store = store
        self.kind = kind

    async def get_status(self, entity_id: int | str) -> Optional[str]:
        return await self.store.get(self.kind, entity_id, META_WORKFLOW_STATUS)

    async def set_status(self, entity_id: int | str, status: str) -> None:
        await self.store.set(self.kind, entity_id, META_WORKFLOW_STATUS, status)

    async def get_failed_step(self, entity_id: int | str) -> Optional[str]:
        return await self.store.get(self.kind, entity_id, META_WORKFLOW_FAILED_STEP)

    async def set_failed_step(self, entity_id: int | str, step: Optional[str]) -> None:
        await self.store.set(self.kind, entity_id, META_WORKFLOW_FAILED_STEP, step)
