"""Memory domain — store protocols and persistence adapters."""

from __future__ import annotations

from rapport.memory.redis_store import RedisConversationHistory
from rapport.memory.redis_store import RedisIntimacyStore
from rapport.memory.redis_store import RedisMemoryStore
from rapport.memory.redis_store import RedisPatternProfileStore
from rapport.memory.store import ConversationHistoryProvider
from rapport.memory.store import InMemoryConversationHistory
from rapport.memory.store import InMemoryIntimacyStore
from rapport.memory.store import InMemoryMemoryStore
from rapport.memory.store import InMemoryPatternProfileStore
from rapport.memory.store import IntimacyStore
from rapport.memory.store import MemoryStore
from rapport.memory.store import PatternProfileStore
from rapport.memory.store import StoreError

__all__ = [
    "ConversationHistoryProvider",
    "InMemoryConversationHistory",
    "InMemoryIntimacyStore",
    "InMemoryMemoryStore",
    "InMemoryPatternProfileStore",
    "IntimacyStore",
    "MemoryStore",
    "PatternProfileStore",
    "RedisConversationHistory",
    "RedisIntimacyStore",
    "RedisMemoryStore",
    "RedisPatternProfileStore",
    "StoreError",
]
