"""Store protocols and in-process implementations.

The engine performs no I/O of its own; everything persistent goes through
these interfaces.  Implementations must give atomic upserts keyed by
``(user_id, category, key)`` or ``user_id``.  Concurrent writers resolve as
last-write-wins.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from datetime import UTC
from typing import Protocol
from typing import runtime_checkable

from rapport.models.conversation import Conversation
from rapport.models.intimacy import IntimacyScore
from rapport.models.memory import clamp_importance
from rapport.models.memory import Memory
from rapport.models.memory import MemoryCategory
from rapport.models.memory import memory_sort_key
from rapport.models.profile import PatternProfile


class StoreError(Exception):
    """Raised by store adapters when the backend cannot be reached or read."""


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class MemoryStore(Protocol):
    """Durable per-user facts."""

    async def upsert(
        self,
        user_id: str,
        category: MemoryCategory | str,
        key: str,
        value: str,
        importance: int,
    ) -> Memory:
        """Create the memory, or bump mention_count/importance if it exists."""

    async def query(self, user_id: str, limit: int) -> list[Memory]:
        """Return memories ordered by importance desc, last_mentioned_at desc."""

    async def count(self, user_id: str) -> int:
        """Return how many memories *user_id* has."""


@runtime_checkable
class IntimacyStore(Protocol):
    """Per-user relationship score."""

    async def get(self, user_id: str) -> IntimacyScore:
        """Return the current score (zero when never updated)."""

    async def update(
        self, user_id: str, delta: float, *, max_score: float = 100.0
    ) -> IntimacyScore:
        """Add *delta*, clamp at *max_score* and refresh last_interaction_at."""


@runtime_checkable
class PatternProfileStore(Protocol):
    """Latest pattern profile snapshot per user."""

    async def get(self, user_id: str) -> PatternProfile | None:
        """Return the stored snapshot, if any."""

    async def put(self, profile: PatternProfile) -> None:
        """Replace the stored snapshot with *profile*."""


@runtime_checkable
class ConversationHistoryProvider(Protocol):
    """Read access to a user's recent conversations."""

    async def list_recent(self, user_id: str, limit: int) -> list[Conversation]:
        """Return up to *limit* conversations, most recent first."""


# ---------------------------------------------------------------------------
# In-process implementations
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class InMemoryMemoryStore:
    """Dict-backed ``MemoryStore`` for tests and single-process use."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utcnow
        self._rows: dict[tuple[str, str, str], Memory] = {}
        self._lock = asyncio.Lock()

    async def upsert(
        self,
        user_id: str,
        category: MemoryCategory | str,
        key: str,
        value: str,
        importance: int,
    ) -> Memory:
        category = MemoryCategory(category)
        ident = (user_id, category.value, key)
        now = self._clock()
        async with self._lock:
            existing = self._rows.get(ident)
            if existing is None:
                memory = Memory(
                    user_id=user_id,
                    category=category,
                    key=key,
                    value=value,
                    importance=clamp_importance(importance),
                    created_at=now,
                    last_mentioned_at=now,
                )
            else:
                memory = existing.mentioned_again(value, importance, at=now)
            self._rows[ident] = memory
        return memory

    async def query(self, user_id: str, limit: int) -> list[Memory]:
        if limit <= 0:
            return []
        rows = [m for (uid, _, _), m in self._rows.items() if uid == user_id]
        rows.sort(key=memory_sort_key)
        return rows[:limit]

    async def count(self, user_id: str) -> int:
        return sum(1 for (uid, _, _) in self._rows if uid == user_id)

    async def get(
        self, user_id: str, category: MemoryCategory | str, key: str
    ) -> Memory | None:
        return self._rows.get((user_id, MemoryCategory(category).value, key))

    async def clear(self) -> None:
        async with self._lock:
            self._rows.clear()


class InMemoryIntimacyStore:
    """Dict-backed ``IntimacyStore``."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utcnow
        self._scores: dict[str, IntimacyScore] = {}
        self._lock = asyncio.Lock()

    async def get(self, user_id: str) -> IntimacyScore:
        return self._scores.get(user_id) or IntimacyScore(user_id=user_id)

    async def update(
        self, user_id: str, delta: float, *, max_score: float = 100.0
    ) -> IntimacyScore:
        if delta < 0:
            raise ValueError("delta must be >= 0")
        async with self._lock:
            current = self._scores.get(user_id) or IntimacyScore(user_id=user_id)
            updated = IntimacyScore(
                user_id=user_id,
                score=min(max_score, current.score + delta),
                last_interaction_at=self._clock(),
            )
            self._scores[user_id] = updated
        return updated

    async def reset(self, user_id: str) -> None:
        """External reset, the only path that lowers a score."""
        async with self._lock:
            self._scores.pop(user_id, None)


class InMemoryPatternProfileStore:
    """Dict-backed ``PatternProfileStore``."""

    def __init__(self) -> None:
        self._profiles: dict[str, PatternProfile] = {}

    async def get(self, user_id: str) -> PatternProfile | None:
        return self._profiles.get(user_id)

    async def put(self, profile: PatternProfile) -> None:
        self._profiles[profile.user_id] = profile


class InMemoryConversationHistory:
    """Dict-backed ``ConversationHistoryProvider`` that can also record turns."""

    def __init__(self) -> None:
        self._by_user: dict[str, dict[str, Conversation]] = {}
        self._lock = asyncio.Lock()

    async def save(self, conversation: Conversation) -> None:
        """Insert or replace *conversation* (keyed by its id)."""
        if conversation.user_id is None:
            raise ValueError("conversation.user_id is required")
        async with self._lock:
            self._by_user.setdefault(conversation.user_id, {})[conversation.id] = (
                conversation
            )

    async def get(self, user_id: str, conversation_id: str) -> Conversation | None:
        return self._by_user.get(user_id, {}).get(conversation_id)

    async def list_recent(self, user_id: str, limit: int) -> list[Conversation]:
        if limit <= 0:
            return []
        conversations = list(self._by_user.get(user_id, {}).values())
        conversations.sort(key=lambda c: c.created_at, reverse=True)
        return conversations[:limit]
