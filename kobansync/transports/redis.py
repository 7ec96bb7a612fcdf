"""Redis job queue for cross-process workers."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterable, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from ..contracts import Job
from .base import BaseJobQueue

logger = logging.getLogger(__name__)


class RedisJobQueue(BaseJobQueue):
    """Redis-based queue.

    Each job name has a sorted set scored by the job's run time. Workers claim a
    due job with ``ZREM`` so only one worker runs it.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        client: Optional[Any] = None,
        prefix: str = "kobansync:jobs:",
        poll_interval: float = 1.0,
    ) -> None:
        if client is None and redis is None:
            raise ImportError("redis package is required for RedisJobQueue")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.prefix = prefix
        self.poll_interval = poll_interval
        self._redis: Optional[Any] = client

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._redis is None:
            self._redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True,
            )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if not self._redis:
            await self.connect()
        return self._redis

    def _key(self, job_name: str) -> str:
        return f"{self.prefix}{job_name}"

    async def push(self, job: Job) -> None:
        client = await self._client()
        await client.zadd(self._key(job.job_name), {job.to_json(): job.run_at.timestamp()})

    async def pending(self, job_name: Optional[str] = None) -> list[Job]:
        client = await self._client()
        if job_name is None:
            keys = [key async for key in client.scan_iter(match=f"{self.prefix}*")]
        else:
            keys = [self._key(job_name)]

        jobs: list[Job] = []
        for key in keys:
            for raw in await client.zrange(key, 0, -1):
                jobs.append(Job.from_json(raw))
        jobs.sort(key=lambda j: j.run_at)
        return jobs

    async def unschedule_all(self, job_name: str) -> int:
        client = await self._client()
        key = self._key(job_name)
        count = await client.zcard(key)
        await client.delete(key)
        return count

    async def pop_due(self, job_names: Iterable[str]) -> Optional[Job]:
        client = await self._client()
        now = datetime.now(timezone.utc).timestamp()
        for job_name in job_names:
            key = self._key(job_name)
            for raw in await client.zrangebyscore(key, "-inf", now, start=0, num=10):
                # Another worker may have claimed it first
                if await client.zrem(key, raw):
                    try:
                        return Job.from_json(raw)
                    except ValueError as e:
                        logger.error(f"Dropping unparseable job from {key}: {e}")
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
