"""SQLite implementation of the meta store and workflow repository."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

from ..contracts import EntityKind
from .models import StepRecord, WorkflowInstance, utcnow
from .repository import MetaStore, WorkflowRepository


class SQLiteStore(MetaStore, WorkflowRepository):
    """Persist meta data and workflow history using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
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
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                workflow_id TEXT PRIMARY KEY,
                event TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                status TEXT NOT NULL,
                attempts INTEGER NOT NULL DEFAULT 0,
                failed_step TEXT,
                message TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS step_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workflow_id TEXT NOT NULL,
                step_name TEXT NOT NULL,
                attempt INTEGER NOT NULL,
                status TEXT NOT NULL,
                message TEXT,
                recorded_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _executemany(self, statements: list[tuple[str, tuple]]) -> None:
        cur = self._conn.cursor()
        for query, params in statements:
            cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Meta store API
    async def get(self, kind: EntityKind, entity_id: int | str, key: str) -> Optional[str]:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT meta_value FROM entity_meta WHERE kind = ? AND entity_id = ? AND meta_key = ?",
            EntityKind(kind).value,
            str(entity_id),
            key,
        )
        return row["meta_value"] if row else None

    async def set(
        self, kind: EntityKind, entity_id: int | str, key: str, value: Optional[str]
    ) -> None:
        if value is None:
            await asyncio.to_thread(
                self._execute,
                "DELETE FROM entity_meta WHERE kind = ? AND entity_id = ? AND meta_key = ?",
                EntityKind(kind).value,
                str(entity_id),
                key,
            )
            return
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO entity_meta (kind, entity_id, meta_key, meta_value) VALUES (?, ?, ?, ?)
            ON CONFLICT (kind, entity_id, meta_key) DO UPDATE SET meta_value = excluded.meta_value
            """,
            EntityKind(kind).value,
            str(entity_id),
            key,
            value,
        )

    async def items(self, kind: EntityKind, entity_id: int | str) -> dict[str, str]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT meta_key, meta_value FROM entity_meta WHERE kind = ? AND entity_id = ? ORDER BY meta_key",
            EntityKind(kind).value,
            str(entity_id),
        )
        return {r["meta_key"]: r["meta_value"] for r in rows}

    # ------------------------------------------------------------------
    # Repository API
    async def create_workflow(self, workflow_id: str, event: str, entity_id: int | str) -> None:
        now = utcnow().isoformat()
        await asyncio.to_thread(
            self._execute,
            """
            INSERT OR IGNORE INTO workflows
                (workflow_id, event, entity_id, status, attempts, created_at, updated_at)
            VALUES (?, ?, ?, ?, 0, ?, ?)
            """,
            workflow_id,
            event,
            str(entity_id),
            "scheduled",
            now,
            now,
        )

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
        now = utcnow().isoformat()
        statements: list[tuple[str, tuple]] = [
            (
                """
                UPDATE workflows
                SET status = ?, attempts = ?, failed_step = ?, message = ?, updated_at = ?
                WHERE workflow_id = ?
                """,
                (status, attempt + 1, failed_step, message, now, workflow_id),
            )
        ]
        for step_name, (step_status, step_message) in steps.items():
            statements.append(
                (
                    """
                    INSERT INTO step_history
                        (workflow_id, step_name, attempt, status, message, recorded_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (workflow_id, step_name, attempt, step_status, step_message, now),
                )
            )
        await asyncio.to_thread(self._executemany, statements)

    def _row_to_workflow(self, row: sqlite3.Row, steps: list[StepRecord]) -> WorkflowInstance:
        return WorkflowInstance(
            workflow_id=row["workflow_id"],
            event=row["event"],
            entity_id=row["entity_id"],
            status=row["status"],
            attempts=row["attempts"],
            failed_step=row["failed_step"],
            message=row["message"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            steps=steps,
        )

    async def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT * FROM workflows WHERE workflow_id = ?",
            workflow_id,
        )
        if not row:
            return None
        steps_rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT * FROM step_history WHERE workflow_id = ? ORDER BY id",
            workflow_id,
        )
        steps = [
            StepRecord(
                id=r["id"],
                workflow_id=r["workflow_id"],
                step_name=r["step_name"],
                attempt=r["attempt"],
                status=r["status"],
                message=r["message"],
                recorded_at=datetime.fromisoformat(r["recorded_at"]),
            )
            for r in steps_rows
        ]
        return self._row_to_workflow(row, steps)

    async def list_workflows(self) -> list[WorkflowInstance]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT * FROM workflows ORDER BY created_at"
        )
        return [self._row_to_workflow(row, []) for row in rows]

    async def purge_workflows(self, older_than: datetime) -> int:
        cutoff = older_than.isoformat()
        await asyncio.to_thread(
            self._execute,
            """
            DELETE FROM step_history WHERE workflow_id IN
                (SELECT workflow_id FROM workflows WHERE updated_at < ?)
            """,
            cutoff,
        )
        return await asyncio.to_thread(
            self._execute, "DELETE FROM workflows WHERE updated_at < ?", cutoff
        )
