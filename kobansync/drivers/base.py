"""Shared scheduling, resume and retry policy for workflow drivers."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ..client import KobanClient
from ..config import KobanSettings, WorkflowSettings
from ..constants import STATUS_FAILED
from ..contracts import EntityKind, new_workflow_id
from ..locks import TransientLock
from ..machine import StateMachine, Step, WorkflowState
from ..persistence import Checkpoint, MetaStore, WorkflowRepository
from ..shop import ShopGateway
from ..transports import BaseJobQueue

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], KobanClient]


class WorkflowDriver:
    """Orchestrates one event type.

    ``schedule`` is called from the shop event and only enqueues a job.
    ``handle`` is called by the worker: it resumes from the checkpointed failed
    step, runs the state machine and, on a retryable failure, schedules the
    next attempt ``retry_delay`` seconds later (at most ``max_retries`` times).

    Subclasses set ``job_name``, ``event``, ``entity_kind`` and
    ``entity_key`` and implement :meth:`load_entity` and :meth:`build_steps`.
    """

    job_name: str = ""
    event: str = ""
    entity_kind: EntityKind
    entity_key: str = ""
    lock_ttl: Optional[float] = None

    def __init__(
        self,
        queue: BaseJobQueue,
        store: MetaStore,
        repository: WorkflowRepository,
        shop: ShopGateway,
        client_factory: ClientFactory,
        settings: KobanSettings,
        workflow_settings: Optional[WorkflowSettings] = None,
        lock: Optional[TransientLock] = None,
    ) -> None:
        workflow_settings = workflow_settings or WorkflowSettings()
        self.workflow_settings = workflow_settings
        self.queue = queue
        self.store = store
        self.repository = repository
        self.shop = shop
        self.client_factory = client_factory
        self.settings = settings
        self.lock = lock
        self.max_retries = workflow_settings.max_retries
        self.retry_delay = workflow_settings.retry_delay
        self.checkpoint = Checkpoint(store, self.entity_kind)
        self.api: Optional[KobanClient] = None

    # ------------------------------------------------------------------
    # Scheduling
    async def schedule(self, entity_id: int, **extra: Any) -> Optional[str]:
        """Enqueue a background run for ``entity_id``; returns the workflow id.

        Returns ``None`` when a run for the same entity was scheduled less than
        ``lock_ttl`` seconds ago.
        """
        workflow_id = new_workflow_id()

        if self.lock_ttl and self.lock is not None:
            lock_key = f"{self.job_name}:{entity_id}"
            if not await self.lock.acquire(lock_key, self.lock_ttl):
                logger.debug(
                    f"Skipping repeated {self.event} trigger for {self.entity_kind.value} "
                    f"{entity_id} due to transient lock"
                )
                return None

        payload = {self.entity_key: entity_id, **extra, "workflow_id": workflow_id, "attempt": 0}
        await self.repository.create_workflow(workflow_id, self.event, entity_id)
        await self.queue.enqueue_async(self.job_name, payload)
        logger.info(
            f"Scheduled {self.event} sync for {self.entity_kind.value} {entity_id}, "
            f"workflow_id={workflow_id}"
        )
        return workflow_id

    # ------------------------------------------------------------------
    # Execution
    async def load_entity(self, entity_id: int) -> Any:
        raise NotImplementedError

    def build_steps(self) -> List[Step]:
        raise NotImplementedError

    async def handle(self, workflow_id: str, attempt: int = 0, **payload: Any) -> WorkflowState:
        """Run (or resume) the workflow for one job."""
        entity_id = payload[self.entity_key]
        logger.debug(
            f"Handling {self.event} for {self.entity_kind.value} {entity_id}, "
            f"workflow_id={workflow_id} attempt={attempt}"
        )

        entity = await self.load_entity(entity_id)
        data: Dict[str, Any] = {
            **payload,
            "workflow_id": workflow_id,
            self.entity_kind.value: entity,
        }

        # A vanished entity restarts from the top so the integrity check fails it.
        failed_step = await self.checkpoint.get_failed_step(entity_id) if entity else None

        machine = StateMachine(
            self.build_steps(), data, failed_step=failed_step, workflow_id=workflow_id
        )
        async with self.client_factory(workflow_id) as api:
            self.api = api
            try:
                state = await machine.process_steps()
            except Exception as exc:
                logger.exception(
                    f"Step {machine.state.current_step} raised for workflow_id={workflow_id}"
                )
                state = machine.abort(f"Unexpected error: {exc!r}")
            finally:
                self.api = None

        await self.handle_exit(state, attempt, payload)
        return state

    async def handle_exit(
        self, state: WorkflowState, attempt: int, payload: Dict[str, Any]
    ) -> None:
        """Persist the checkpoint and schedule a retry when one is allowed."""
        entity_id = payload[self.entity_key]
        workflow_id = state.workflow_id
        status = state.status

        await self.checkpoint.set_status(entity_id, status)

        if status == STATUS_FAILED and state.retry and attempt < self.max_retries:
            await self.checkpoint.set_failed_step(entity_id, state.failed_step)
            run_at = datetime.now(timezone.utc) + timedelta(seconds=self.retry_delay)
            await self.queue.schedule_at(
                run_at,
                self.job_name,
                {**payload, "workflow_id": workflow_id, "attempt": attempt + 1},
            )
            logger.warning(
                f"Workflow {workflow_id} failed at step {state.failed_step}: {state.message}. "
                f"Retry {attempt + 1}/{self.max_retries} scheduled at {run_at.isoformat()}"
            )
        else:
            await self.checkpoint.set_failed_step(entity_id, None)
            if status == STATUS_FAILED:
                logger.error(
                    f"Workflow {workflow_id} for {self.entity_kind.value} {entity_id} failed "
                    f"definitively after {attempt + 1} attempt(s) at step {state.failed_step}: "
                    f"{state.message}"
                )

        await self.repository.record_attempt(
            workflow_id,
            attempt,
            status,
            state.failed_step if status == STATUS_FAILED else None,
            {name: (r.status, r.message) for name, r in state.step_records.items()},
            message=state.message,
            event=self.event,
            entity_id=entity_id,
        )


__all__ = [
    "ClientFactory",
    "WorkflowDriver",
]
