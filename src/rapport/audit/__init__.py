"""Audit subsystem — async JSONL event logging."""

from rapport.audit.schemas import AuditEvent
from rapport.audit.schemas import AuditEventType
from rapport.audit.store import AuditLogger

__all__ = [
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
]
