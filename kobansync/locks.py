"""Short-lived locks that suppress duplicate workflow scheduling."""

from __future__ import annotations

import abc
import asyncio
import time
from typing import Any, Callable, Dict, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None


class TransientLock(metaclass=abc.ABCMeta):
    """A lock that expires on its own after ``ttl`` seconds."""

    @abc.abstractmethod
    async def acquire(self, key: str, ttl: float) -> bool:
        """Take the lock, returning ``False`` when it is already held."""
        raise NotImplementedError


class InMemoryLock(TransientLock):
    """Process local lock, for tests and single worker deployments."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._expiries: Dict[str, float] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    async def acquire(self, key: str, ttl: float) -> bool:
        async with self._lock:
            now = self._clock()
            self._expiries = {k: t for k, t in self._expiries.items() if t > now}
            if key in self._expiries:
                return False
            self._expiries[key] = now + ttl
            return True


class RedisLock(TransientLock):
    """Lock shared by every process using the same Redis database."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        client: Optional[Any] = None,
        prefix: str = "kobansync:lock:",
    ) -> None:
        if client is None and redis is None:
            raise ImportError("redis package is required for RedisLock")
        self.prefix = prefix
        self._redis = client or redis.Redis(
            host=host, port=port, db=db, password=password, decode_responses=True
        )

    async def acquire(self, key: str, ttl: float) -> bool:
        ttl_ms = max(1, int(ttl * 1000))
        acquired = await self._redis.set(f"{self.prefix}{key}", "1", nx=True, px=ttl_ms)
        return bool(acquired)
