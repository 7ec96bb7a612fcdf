"""Core contracts exchanged between drivers, queue and stores."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field

from .constants import JOB_GROUP


class EntityKind(str, Enum):
    """Shop entity kinds that carry Koban meta data."""

    ORDER = "order"
    USER = "user"
    PRODUCT = "product"
    CATEGORY = "category"


def new_workflow_id() -> str:
    """Return a unique workflow identifier."""
    return f"wkf_{uuid.uuid4().hex}"


class Job(BaseModel):
    """Envelope stored on the job queue. Runs no earlier than ``run_at``."""

    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    job_name: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    group: str = JOB_GROUP
    run_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def matches(self, payload_filter: Dict[str, Any] | None) -> bool:
        """Return ``True`` when every filter item equals the payload item."""
        if not payload_filter:
            return True
        return all(self.payload.get(k) == v for k, v in payload_filter.items())

    def to_json(self) -> str:
        """Serialize job to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "Job":
        """Deserialize job from JSON."""
        return cls.model_validate_json(data)
