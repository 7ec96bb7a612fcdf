"""In-memory implementation of the meta store and workflow repository."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Mapping, Optional, Tuple

from ..contracts import EntityKind
from .models import StepRecord, WorkflowInstance, utcnow
from .repository import MetaStore, WorkflowRepository


def _meta_key(kind: EntityKind | str, entity_id: int | str) -> Tuple[str, str]:
    return EntityKind(kind).value, str(entity_id)


class InMemoryStore(MetaStore, WorkflowRepository):
    """Store meta data and workflow history in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._meta: Dict[Tuple[str, str], Dict[str, str]] = {}
        self._workflows: Dict[str, WorkflowInstance] = {}
        self._step_id = 0

    # ------------------------------------------------------------------
    async def get(self, kind: EntityKind, entity_id: int | str, key: str) -> Optional[str]:
        return self._meta.get(_meta_key(kind, entity_id), {}).get(key)

    async def set(
        self, kind: EntityKind, entity_id: int | str, key: str, value: Optional[str]
    ) -> None:
        entry = self._meta.setdefault(_meta_key(kind, entity_id), {})
        if value is None:
            entry.pop(key, None)
        else:
            entry[key] = value

    async def items(self, kind: EntityKind, entity_id: int | str) -> dict[str, str]:
        return dict(self._meta.get(_meta_key(kind, entity_id), {}))

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow_id: str, event: str, entity_id: int | str) -> None:
        if workflow_id in self._workflows:
            return
        self._workflows[workflow_id] = WorkflowInstance(
            workflow_id=workflow_id, event=event, entity_id=str(entity_id)
        )

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
        await self.create_workflow(workflow_id, event, entity_id)
        wf = self._workflows[workflow_id]
        now = utcnow()
        wf.status = status
        wf.attempts = attempt + 1
        wf.failed_step = failed_step
        wf.message = message
        wf.updated_at = now
        for step_name, (step_status, step_message) in steps.items():
            self._step_id += 1
            wf.steps.append(
                StepRecord(
                    id=self._step_id,
                    workflow_id=workflow_id,
                    step_name=step_name,
                    attempt=attempt,
                    status=step_status,
                    message=step_message,
                    recorded_at=now,
                )
            )

    async def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        return self._workflows.get(workflow_id)

    async def list_workflows(self) -> list[WorkflowInstance]:
        return list(self._workflows.values())

    async def purge_workflows(self, older_than: datetime) -> int:
        stale = [wid for wid, wf in self._workflows.items() if wf.updated_at < older_than]
        for wid in stale:
            del self._workflows[wid]
        return len(stale)
