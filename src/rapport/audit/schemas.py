"""Audit event types and data models."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class AuditEventType(str, Enum):
    """Categories of auditable events."""

    MEMORY_UPSERTED = "MEMORY_UPSERTED"
    INTIMACY_UPDATED = "INTIMACY_UPDATED"
    PATTERN_PROFILE_REPLACED = "PATTERN_PROFILE_REPLACED"
    DIRECTIVE_BUILT = "DIRECTIVE_BUILT"


class AuditEvent(BaseModel):
    """A single immutable audit log entry."""

    model_config = {"frozen": True}

    timestamp: float = Field(
        default_factory=time.time,
        description="Unix epoch when the event occurred.",
    )
    event_type: AuditEventType = Field(
        description="Category of the audited action.",
    )
    user_id: str | None = Field(
        default=None,
        description="User the event concerns.",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Arbitrary event-specific data.",
    )
