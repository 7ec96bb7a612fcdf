"""PostgreSQL implementation of the meta store and workflow repository."""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional

import asyncpg

from ..contracts import EntityKind
from .models import StepRecord, WorkflowInstance, utcnow
from .repository import MetaStore, WorkflowRepository


class PostgresStore(MetaStore, WorkflowRepository):
    """Persist meta data and workflow history using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS entity_meta (
                kind TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                meta_key TEXT NOT NULL,
                meta_value TEXT NOT NULL,
                PRIMARY KEY (kind, entity_id, meta_key)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                workflow_id TEXT PRIMARY KEY,
                event TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                status TEXT NOT NULL,
                attempts INTEGER NOT NULL DEFAULT 0,
                failed_step TEXT,
                message TEXT,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS step_history (
                id SERIAL PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                step_name TEXT NOT NULL,
                attempt INTEGER NOT NULL,
                status TEXT NOT NULL,
                message TEXT,
                recorded_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    async def get(self, kind: EntityKind, entity_id: int | str, key: str) -> Optional[str]:
        conn = await self._connect()
        try:
            return await conn.fetchval(
                "SELECT meta_value FROM entity_meta WHERE kind = $1 AND entity_id = $2 AND meta_key = $3",
                EntityKind(kind).value,
                str(entity_id),
                key,
            )
        finally:
            await conn.close()

    async def set(
        self, kind: EntityKind, entity_id: int | str, key: str, value: Optional[str]
    ) -> None:
        conn = await self._connect()
        try:
            if value is None:
                await conn.execute(
                    "DELETE FROM entity_meta WHERE kind = $1 AND entity_id = $2 AND meta_key = $3",
                    EntityKind(kind).value,
                    str(entity_id),
                    key,
                )
            else:
                await conn.execute(
                    """
                    INSERT INTO entity_meta (kind, entity_id, meta_key, meta_value)
                    VALUES ($1, $2, $3, $4)
                    ON CONFLICT (kind, entity_id, meta_key) DO UPDATE SET meta_value = EXCLUDED.meta_value
                    """,
                    EntityKind(kind).value,
                    str(entity_id),
                    key,
                    value,
                )
        finally:
            await conn.close()

    async def items(self, kind: EntityKind, entity_id: int | str) -> dict[str, str]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT meta_key, meta_value FROM entity_meta WHERE kind = $1 AND entity_id = $2 ORDER BY meta_key",
                EntityKind(kind).value,
                str(entity_id),
            )
        finally:
            await conn.close()
        return {r["meta_key"]: r["meta_value"] for r in rows}

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow_id: str, event: str, entity_id: int | str) -> None:
        conn = await self._connect()
        try:
            now = utcnow()
            await conn.execute(
                """
                INSERT INTO workflows
                    (workflow_id, event, entity_id, status, attempts, created_at, updated_at)
                VALUES ($1, $2, $3, $4, 0, $5, $5)
                ON CONFLICT (workflow_id) DO NOTHING
                """,
                workflow_id,
                event,
                str(entity_id),
                "scheduled",
                now,
            )
        finally:
            await conn.close()

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
        conn = await self._connect()
        try:
            now = utcnow()
            async with conn.transaction():
                await conn.execute(
                    """
                    UPDATE workflows
                    SET status = $1, attempts = $2, failed_step = $3, message = $4, updated_at = $5
                    WHERE workflow_id = $6
                    """,
                    status,
                    attempt + 1,
                    failed_step,
                    message,
                    now,
                    workflow_id,
                )
                for step_name, (step_status, step_message) in steps.items():
                    await conn.execute(
                        """
                        INSERT INTO step_history
                            (workflow_id, step_name, attempt, status, message, recorded_at)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        """,
                        workflow_id,
                        step_name,
                        attempt,
                        step_status,
                        step_message,
                        now,
                    )
        finally:
            await conn.close()

    @staticmethod
    def _row_to_workflow(row: asyncpg.Record, steps: list[StepRecord]) -> WorkflowInstance:
        return WorkflowInstance(
            workflow_id=row["workflow_id"],
            event=row["event"],
            entity_id=row["entity_id"],
            status=row["status"],
            attempts=row["attempts"],
            failed_step=row["failed_step"],
            message=row["message"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            steps=steps,
        )

    async def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT * FROM workflows WHERE workflow_id = $1", workflow_id
            )
            if not row:
                return None
            step_rows = await conn.fetch(
                "SELECT * FROM step_history WHERE workflow_id = $1 ORDER BY id",
                workflow_id,
            )
        finally:
            await conn.close()
        steps = [
            StepRecord(
                id=r["id"],
                workflow_id=r["workflow_id"],
                step_name=r["step_name"],
                attempt=r["attempt"],
                status=r["status"],
                message=r["message"],
                recorded_at=r["recorded_at"],
            )
            for r in step_rows
        ]
        return self._row_to_workflow(row, steps)

    async def list_workflows(self) -> list[WorkflowInstance]:
        conn = await self._connect()
        try:
            rows = await conn.fetch("SELECT * FROM workflows ORDER BY created_at")
        finally:
            await conn.close()
        return [self._row_to_workflow(row, []) for row in rows]

    async def purge_workflows(self, older_than: datetime) -> int:
        conn = await self._connect()
        try:
            async with conn.transaction():
                await conn.execute(
                    """
                    DELETE FROM step_history WHERE workflow_id IN
                        (SELECT workflow_id FROM workflows WHERE updated_at < $1)
                    """,
                    older_than,
                )
                result = await conn.execute(
                    "DELETE FROM workflows WHERE updated_at < $1", older_than
                )
        finally:
            await conn.close()
        # asyncpg returns the command tag, e.g. "DELETE 3"
        return int(result.split()[-1])
