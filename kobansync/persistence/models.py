"""Data models for persisted workflow history."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepRecord(BaseModel):
    """Outcome of one step in one attempt of a workflow."""

    id: Optional[int] = None
    workflow_id: str
    step_name: str
    attempt: int = 0
    status: str
    message: Optional[str] = None
    recorded_at: datetime = Field(default_factory=utcnow)


class WorkflowInstance(BaseModel):
    """Audit trail of a workflow across all of its attempts."""

    workflow_id: str
    event: str
    entity_id: str
    status: str = "scheduled"
    attempts: int = 0
    failed_step: Optional[str] = None
    message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    steps: list[StepRecord] = Field(default_factory=list)
