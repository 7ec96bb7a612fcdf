"""Persistence layer for kobansync checkpoints, remote ids and history."""

from __future__ import annotations

import os
from typing import Optional, Union

from ..config import KobanSyncConfig, load_config
from .inmemory import InMemoryStore
from .models import StepRecord, WorkflowInstance
from .repository import Checkpoint, MetaStore, WorkflowRepository
from .sqlite import SQLiteStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresStore
except Exception:  # pragma: no cover - optional dependency
    PostgresStore = None  # type: ignore

Store = Union[InMemoryStore, SQLiteStore, "PostgresStore"]

_store_instance: Store | None = None


def get_store(
    database_url: Optional[str] = None, config: Optional[KobanSyncConfig] = None
) -> Store:
    """Factory function to obtain the meta store / workflow repository.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``KOBANSYNC_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory store is returned.
    """

    global _store_instance
    if _store_instance is not None and database_url is None and config is None:
        return _store_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("KOBANSYNC_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        _store_instance = InMemoryStore()
        return _store_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _store_instance = SQLiteStore(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresStore is None:
            raise RuntimeError("Postgres support not available")
        _store_instance = PostgresStore(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _store_instance


def reset_store() -> None:
    """Forget the cached store instance."""
    global _store_instance
    _store_instance = None


__all__ = [
    "Checkpoint",
    "MetaStore",
    "StepRecord",
    "WorkflowInstance",
    "WorkflowRepository",
    "InMemoryStore",
    "SQLiteStore",
    "PostgresStore",
    "get_store",
    "reset_store",
]
