"""Pydantic models for durable per-user facts.

A ``Memory`` is unique per ``(user_id, category, key)``.  Re-extracting the
same key updates the stored row: ``mention_count`` grows by one, importance
keeps the larger value, ``value`` and ``last_mentioned_at`` are refreshed.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone
from enum import StrEnum

from pydantic import BaseModel
from pydantic import Field

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 5


class MemoryCategory(StrEnum):
    """Kinds of facts the extractor recognizes."""

    hobby = "hobby"
    work = "work"
    relationship = "relationship"
    goal = "goal"
    preference = "preference"
    experience = "experience"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return f"mem_{uuid.uuid4().hex}"


def clamp_importance(importance: int) -> int:
    """Clamp *importance* into the 1-5 range."""
    return max(MIN_IMPORTANCE, min(MAX_IMPORTANCE, int(importance)))


class Memory(BaseModel):
    """A single durable fact about a user."""

    id: str = Field(
        default_factory=_new_id,
        description="Unique identifier, auto-generated as mem_{uuid4_hex}.",
    )
    user_id: str = Field(description="Owner of the memory.")
    category: MemoryCategory = Field(description="Fact category.")
    key: str = Field(description="Normalized key within the category.")
    value: str = Field(description="Matched phrase or truncated utterance.")
    importance: int = Field(
        default=MIN_IMPORTANCE,
        ge=MIN_IMPORTANCE,
        le=MAX_IMPORTANCE,
        description="How much the fact matters, 1 (low) to 5 (high).",
    )
    mention_count: int = Field(
        default=1,
        ge=1,
        description="Number of times the fact was extracted.",
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the fact was first extracted.",
    )
    last_mentioned_at: datetime = Field(
        default_factory=_utcnow,
        description="When the fact was last extracted.",
    )

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.user_id, self.category.value, self.key)

    def mentioned_again(
        self, value: str, importance: int, *, at: datetime | None = None
    ) -> Memory:
        """Return the updated copy for a re-extraction of the same key."""
        return self.model_copy(
            update={
                "value": value,
                "importance": max(self.importance, clamp_importance(importance)),
                "mention_count": self.mention_count + 1,
                "last_mentioned_at": at or _utcnow(),
            }
        )


@dataclass(frozen=True)
class MemoryCandidate:
    """A fact proposed by the extractor, not yet persisted."""

    category: MemoryCategory
    key: str
    value: str
    importance: int


def memory_sort_key(memory: Memory) -> tuple[int, float]:
    """Sort key for store queries: importance desc, then most recent first."""
    return (-memory.importance, -memory.last_mentioned_at.timestamp())
