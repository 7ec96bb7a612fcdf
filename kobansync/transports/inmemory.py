"""In-memory job queue for testing."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Iterable, List, Optional

from ..contracts import Job
from .base import BaseJobQueue


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryJobQueue(BaseJobQueue):
    """Simple in-process queue for unit tests."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow, poll_interval: float = 0.1) -> None:
        self._jobs: List[Job] = []
        self._lock = asyncio.Lock()
        self._clock = clock
        self.poll_interval = poll_interval

    async def push(self, job: Job) -> None:
        async with self._lock:
            self._jobs.append(job)
            self._jobs.sort(key=lambda j: j.run_at)

    async def pending(self, job_name: Optional[str] = None) -> list[Job]:
        async with self._lock:
            return [j for j in self._jobs if job_name is None or j.job_name == job_name]

    async def unschedule_all(self, job_name: str) -> int:
        async with self._lock:
            before = len(self._jobs)
            self._jobs = [j for j in self._jobs if j.job_name != job_name]
            return before - len(self._jobs)

    async def pop_due(self, job_names: Iterable[str]) -> Optional[Job]:
        """Remove and return the first due job, if any."""
        names = set(job_names)
        async with self._lock:
            now = self._clock()
            for index, job in enumerate(self._jobs):
                if job.job_name in names and job.run_at <= now:
                    return self._jobs.pop(index)
        return None

    async def subscribe(
        self, job_names: Iterable[str], lifespan: Optional[float] = None
    ) -> AsyncIterator[Job]:
        names = list(job_names)
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            if lifespan is not None and loop.time() - start_time >= lifespan:
                break

            job = await self.pop_due(names)
            if job is not None:
                yield job
                continue

            await asyncio.sleep(self.poll_interval)
