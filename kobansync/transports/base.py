"""Base job queue interface for kobansync background work."""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Iterable, Optional

from ..contracts import Job


class BaseJobQueue(metaclass=abc.ABCMeta):
    """Abstract background job queue with delayed scheduling."""

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    @abc.abstractmethod
    async def push(self, job: Job) -> None:
        """Store a job until it is due."""
        raise NotImplementedError

    async def enqueue_async(self, job_name: str, payload: Dict[str, Any]) -> Job:
        """Queue a job to run as soon as a worker is available."""
        job = Job(job_name=job_name, payload=payload)
        await self.push(job)
        return job

    async def schedule_at(
        self, timestamp: datetime, job_name: str, payload: Dict[str, Any]
    ) -> Job:
        """Queue a job that must not run before ``timestamp``."""
        job = Job(job_name=job_name, payload=payload, run_at=timestamp)
        await self.push(job)
        return job

    @abc.abstractmethod
    async def pending(self, job_name: Optional[str] = None) -> list[Job]:
        """Return queued jobs, soonest first."""
        raise NotImplementedError

    async def has_scheduled(self, job_name: str) -> bool:
        return bool(await self.pending(job_name))

    async def next_scheduled(
        self, job_name: str, payload_filter: Optional[Dict[str, Any]] = None
    ) -> Optional[datetime]:
        """Return when the next matching job runs, ``None`` if there is none."""
        for job in await self.pending(job_name):
            if job.matches(payload_filter):
                return job.run_at
        return None

    @abc.abstractmethod
    async def unschedule_all(self, job_name: str) -> int:
        """Drop every queued job with this name, returning how many were dropped."""
        raise NotImplementedError

    @abc.abstractmethod
    async def subscribe(
        self, job_names: Iterable[str], lifespan: Optional[float] = None
    ) -> AsyncIterator[Job]:
        """Yield due jobs for the given names.

        Args:
            job_names: The job names to consume
            lifespan: Maximum time in seconds to keep consuming. If None, runs indefinitely.
        """
        raise NotImplementedError

    async def ack(self, job: Job) -> None:
        """Acknowledge successful processing (no-op by default)."""
        pass

    async def nack(self, job: Job) -> None:
        """Negatively acknowledge, defaulting to ack."""
        await self.ack(job)
