"""Async JSONL audit logger for personalization state changes."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from rapport.audit.schemas import AuditEvent
from rapport.audit.schemas import AuditEventType
from rapport.config import AuditConfig

logger = logging.getLogger(__name__)


class AuditLogger:
    """One JSON line per memory, intimacy, profile or directive event.

    File I/O runs in a worker thread; a single ``asyncio.Lock`` keeps
    appends and reads from interleaving.
    """

    def __init__(self, config: AuditConfig) -> None:
        self.config = config
        self._path = Path(config.file_path)
        self._lock = asyncio.Lock()

    async def record(
        self,
        event_type: AuditEventType,
        *,
        user_id: str | None = None,
        **payload,
    ) -> None:
        """Build an ``AuditEvent`` from keyword payload and append it."""
        await self.log(
            AuditEvent(event_type=event_type, user_id=user_id, payload=payload)
        )

    async def log(self, event: AuditEvent) -> None:
        if not self.config.enabled:
            return
        async with self._lock:
            await asyncio.to_thread(self._append, event.model_dump_json())

    def _append(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    async def read_events(
        self,
        *,
        event_type: AuditEventType | None = None,
        user_id: str | None = None,
        since: float | datetime | None = None,
    ) -> list[AuditEvent]:
        """Return logged events in write order, optionally filtered.

        *since* is a Unix timestamp or an aware ``datetime``.  Lines that do
        not parse are skipped with a warning.
        """
        if isinstance(since, datetime):
            since = since.timestamp()
        async with self._lock:
            lines = await asyncio.to_thread(self._read_lines)

        events: list[AuditEvent] = []
        for line_no, line in lines:
            try:
                event = AuditEvent.model_validate_json(line)
            except ValidationError:
                logger.warning(
                    "skipping malformed audit line %d path=%s", line_no, self._path
                )
                continue
            if event_type is not None and event.event_type != event_type:
                continue
            if user_id is not None and event.user_id != user_id:
                continue
            if since is not None and event.timestamp < since:
                continue
            events.append(event)
        return events

    def _read_lines(self) -> list[tuple[int, str]]:
        if not self._path.exists():
            return []
        with self._path.open(encoding="utf-8") as fh:
            return [
                (line_no, line)
                for line_no, line in enumerate(fh, start=1)
                if line.strip()
            ]
