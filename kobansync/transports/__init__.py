"""Job queue factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import KobanSyncConfig, load_config
from .base import BaseJobQueue
from .inmemory import InMemoryJobQueue


def get_queue(
    backend: Optional[str] = None, config: Optional[KobanSyncConfig] = None
) -> BaseJobQueue:
    """Factory function to get the configured job queue."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("KOBANSYNC_TRANSPORT")
        or config.transport.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryJobQueue()
    elif backend == "redis":
        from .redis import RedisJobQueue

        redis_conf = config.transport.redis
        return RedisJobQueue(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
        )
    else:
        raise ValueError(f"Unsupported transport backend: {backend}")


def get_lock(backend: Optional[str] = None, config: Optional[KobanSyncConfig] = None):
    """Return the duplicate-suppression lock matching the queue backend."""
    from ..locks import InMemoryLock, RedisLock

    config = config or load_config()
    backend = (
        backend
        or os.getenv("KOBANSYNC_TRANSPORT")
        or config.transport.backend
    ).lower()

    if backend == "redis":
        redis_conf = config.transport.redis
        return RedisLock(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
        )
    return InMemoryLock()


__all__ = ["BaseJobQueue", "InMemoryJobQueue", "get_lock", "get_queue"]
