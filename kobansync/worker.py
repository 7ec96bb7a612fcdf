"""Background worker executing queued Koban sync jobs."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from .contracts import Job
from .drivers import WorkflowDriver
from .machine import WorkflowState
from .transports import BaseJobQueue

logger = logging.getLogger(__name__)


class Worker:
    """Executes workflow jobs by listening to the job queue.

    Jobs are processed one at a time; each job name is routed to the driver
    registered for it.
    """

    def __init__(self, queue: BaseJobQueue, drivers: Iterable[WorkflowDriver]) -> None:
        self._queue = queue
        self._drivers: Dict[str, WorkflowDriver] = {d.job_name: d for d in drivers}

    @property
    def job_names(self) -> list[str]:
        return list(self._drivers)

    async def start(self, lifespan: Optional[float] = None) -> None:
        """Consume jobs until ``lifespan`` seconds have passed (forever if ``None``)."""
        await self._queue.connect()
        try:
            async for job in self._queue.subscribe(self.job_names, lifespan=lifespan):
                try:
                    await self.handle_job(job)
                except Exception:
                    logger.exception(f"Job {job.job_id} ({job.job_name}) crashed")
                    await self._queue.nack(job)
                else:
                    await self._queue.ack(job)
        finally:
            await self._queue.disconnect()

    async def handle_job(self, job: Job) -> WorkflowState:
        driver = self._drivers.get(job.job_name)
        if driver is None:
            raise ValueError(f"No driver registered for job {job.job_name}")

        logger.info(f"Received job {job.job_id}: {job.job_name} {job.payload}")
        state = await driver.handle(**job.payload)
        logger.info(
            f"Job {job.job_id} finished with status {state.status} "
            f"for workflow_id={state.workflow_id}"
        )
        return state
