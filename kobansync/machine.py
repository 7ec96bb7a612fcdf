"""Step based workflow state machine.

Runs an ordered list of steps against a shared :class:`WorkflowState`. A run
can resume from the step that failed in a previous attempt: earlier steps are
skipped entirely, so their side effects are never repeated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .constants import STATUS_FAILED, STATUS_PROCESSING, STATUS_STOP, STATUS_SUCCESS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    """The step completed; ``data`` is merged into the workflow data."""

    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    status: str = field(default=STATUS_SUCCESS, init=False)


@dataclass(frozen=True)
class Stop:
    """Nothing left to do. Halts the run without counting as a failure."""

    message: Optional[str] = None
    status: str = field(default=STATUS_STOP, init=False)


@dataclass(frozen=True)
class Failed:
    """The step did not complete. ``retry=False`` marks the failure terminal."""

    message: Optional[str] = None
    retry: bool = True
    status: str = field(default=STATUS_FAILED, init=False)


StepResult = Union[Success, Stop, Failed]


def success(message: Optional[str] = None, data: Optional[Dict[str, Any]] = None) -> Success:
    return Success(message=message, data=data)


def stop(message: Optional[str] = None) -> Stop:
    return Stop(message=message)


def failed(message: Optional[str] = None, retry: bool = True) -> Failed:
    return Failed(message=message, retry=retry)


@dataclass
class StepRecord:
    status: str
    message: Optional[str] = None


@dataclass
class WorkflowState:
    """Mutable record threaded through one run of the state machine."""

    workflow_id: str = ""
    data: Dict[str, Any] = field(default_factory=dict)
    step_records: Dict[str, StepRecord] = field(default_factory=dict)
    status: str = STATUS_PROCESSING
    current_step: Optional[str] = None
    failed_step: Optional[str] = None
    retry: bool = True

    def get_data(self, key: Optional[str] = None) -> Any:
        """Return the value stored under ``key``, or all data when no key is given."""
        if key:
            return self.data.get(key)
        return self.data

    @property
    def message(self) -> Optional[str]:
        """Message of the last recorded step, if any."""
        if self.current_step and self.current_step in self.step_records:
            return self.step_records[self.current_step].message
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow_id": self.workflow_id,
            "status": self.status,
            "failed_step": self.failed_step,
            "retry": self.retry,
            "steps": {
                name: {"status": record.status, "message": record.message}
                for name, record in self.step_records.items()
            },
        }


StepHandler = Callable[[WorkflowState], Awaitable[StepResult]]


@dataclass(frozen=True)
class Step:
    """A named unit of work. The name is what gets checkpointed on failure."""

    name: str
    handler: StepHandler


class StateMachine:
    """Executes steps in order, stopping on failure or explicit stop."""

    def __init__(
        self,
        steps: List[Step],
        data: Optional[Dict[str, Any]] = None,
        failed_step: Optional[str] = None,
        workflow_id: str = "",
    ) -> None:
        self.steps = steps
        self.state = WorkflowState(
            workflow_id=workflow_id,
            data=dict(data or {}),
            failed_step=failed_step,
        )

    @property
    def status(self) -> str:
        return self.state.status

    def get_steps_to_process(self) -> List[Step]:
        """Prune the steps preceding the previously failed step.

        An unknown failed step name runs the whole list again.
        """
        for index, step in enumerate(self.steps):
            if step.name == self.state.failed_step:
                return self.steps[index:]
        return list(self.steps)

    async def process_steps(self) -> WorkflowState:
        state = self.state
        steps = self.get_steps_to_process()
        if state.failed_step and len(steps) < len(self.steps):
            logger.info(
                f"Resuming from step {state.failed_step} for workflow_id={state.workflow_id}"
            )

        for step in steps:
            state.current_step = step.name
            result = await step.handler(state)
            self._apply(result)
            if result.status in (STATUS_FAILED, STATUS_STOP):
                break

        if state.current_step in state.step_records:
            state.status = state.step_records[state.current_step].status
        else:
            state.status = STATUS_PROCESSING
        if state.status != STATUS_FAILED:
            state.failed_step = None

        logger.info(
            f"Workflow execution finished for workflow_id={state.workflow_id}: {state.to_dict()}"
        )
        return state

    def abort(self, message: str) -> WorkflowState:
        """Record the current step as a retryable failure after it raised."""
        state = self.state
        if state.current_step is not None:
            self._apply(failed(message))
        state.status = STATUS_FAILED
        return state

    def _apply(self, result: StepResult) -> None:
        state = self.state
        if not isinstance(result, (Success, Stop, Failed)):
            raise TypeError(
                f"Step {state.current_step} returned {result!r}, expected a step result"
            )

        state.step_records[state.current_step] = StepRecord(
            status=result.status, message=result.message
        )
        if isinstance(result, Success):
            if result.data:
                state.data.update(result.data)
        elif isinstance(result, Failed):
            state.failed_step = state.current_step
            if not result.retry:
                state.retry = False
