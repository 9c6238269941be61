"""Proactive greeting shown when a user opens a new conversation."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from rapport.engine.templates import AFTERNOON_GREETING
from rapport.engine.templates import EVENING_GREETING
from rapport.engine.templates import FOLLOW_UPS
from rapport.engine.templates import GENERIC_FOLLOW_UP
from rapport.engine.templates import MORNING_GREETING
from rapport.models.memory import Memory


def time_of_day_opener(now: datetime) -> str:
    if now.hour < 12:
        return MORNING_GREETING
    if now.hour < 18:
        return AFTERNOON_GREETING
    return EVENING_GREETING


def recent_important(
    memories: Sequence[Memory], *, min_importance: int = 3
) -> list[Memory]:
    """Memories at or above *min_importance*, most recently mentioned first."""
    kept = [m for m in memories if m.importance >= min_importance]
    kept.sort(key=lambda m: m.last_mentioned_at, reverse=True)
    return kept


def compose_greeting(
    memories: Sequence[Memory],
    now: datetime,
    *,
    min_importance: int = 3,
) -> str:
    """Time-of-day opener followed by a question about a remembered fact."""
    opener = time_of_day_opener(now)
    candidates = recent_important(memories, min_importance=min_importance)
    if not candidates:
        return f"{opener} {GENERIC_FOLLOW_UP}"

    top = candidates[0]
    template = FOLLOW_UPS.get(top.category)
    if template is None:
        return opener
    return f"{opener} {template.format(value=top.value)}"
