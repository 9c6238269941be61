"""Redis-backed stores.

Memories are stored as JSON strings keyed by
``{prefix}:memory:{user_id}:{category}:{key}``.  A per-user sorted set
``{prefix}:memories:{user_id}`` indexes them (score = last mention).
Intimacy scores and pattern profiles live under ``{prefix}:intimacy:{user_id}``
and ``{prefix}:profile:{user_id}``.  Conversations are JSON under
``{prefix}:conversation:{id}`` with a per-user recency sorted set.

Read-modify-write paths use WATCH/MULTI so concurrent sessions of the same
user resolve as last-write-wins without lost increments.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from datetime import UTC

from redis.asyncio import Redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from redis.exceptions import WatchError  # type: ignore[import-untyped]

from rapport.memory.store import StoreError
from rapport.models.conversation import Conversation
from rapport.models.intimacy import IntimacyScore
from rapport.models.memory import clamp_importance
from rapport.models.memory import Memory
from rapport.models.memory import MemoryCategory
from rapport.models.memory import memory_sort_key
from rapport.models.profile import PatternProfile

logger = logging.getLogger(__name__)

_DEFAULT_PREFIX = "rapport"
_MAX_WATCH_RETRIES = 5
_CLEAR_BATCH_SIZE = 100


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _decode(raw: bytes | str) -> str:
    return raw.decode() if isinstance(raw, bytes) else raw


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Re-raise backend failures as ``StoreError``."""
    try:
        yield
    except RedisError as exc:
        logger.warning("redis operation failed operation=%s error=%s", operation, exc)
        raise StoreError(f"{operation} failed: {exc}") from exc


class _RedisStoreBase:
    def __init__(self, redis: Redis, *, prefix: str = _DEFAULT_PREFIX) -> None:
        self._redis = redis
        self._prefix = prefix

    async def clear(self) -> None:
        """Remove every key under this store's prefix.

        Deletes in batches to avoid loading all keys into memory at once.
        """
        with _translate_errors("clear"):
            batch: list = []
            async for key in self._redis.scan_iter(match=f"{self._prefix}:*"):
                batch.append(key)
                if len(batch) >= _CLEAR_BATCH_SIZE:
                    await self._redis.delete(*batch)
                    batch.clear()
            if batch:
                await self._redis.delete(*batch)


# ---------------------------------------------------------------------------
# Memories
# ---------------------------------------------------------------------------


class RedisMemoryStore(_RedisStoreBase):
    """``MemoryStore`` on Redis."""

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = _DEFAULT_PREFIX,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(redis, prefix=prefix)
        self._clock = clock or _utcnow

    def _memory_key(self, user_id: str, category: str, key: str) -> str:
        return f"{self._prefix}:memory:{user_id}:{category}:{key}"

    def _index_key(self, user_id: str) -> str:
        return f"{self._prefix}:memories:{user_id}"

    async def upsert(
        self,
        user_id: str,
        category: MemoryCategory | str,
        key: str,
        value: str,
        importance: int,
    ) -> Memory:
        category = MemoryCategory(category)
        memory_key = self._memory_key(user_id, category.value, key)
        member = f"{category.value}:{key}"

        with _translate_errors("memory.upsert"):
            for _ in range(_MAX_WATCH_RETRIES):
                async with self._redis.pipeline(transaction=True) as pipe:
                    try:
                        await pipe.watch(memory_key)
                        raw = await pipe.get(memory_key)
                        now = self._clock()
                        if raw is None:
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
                            memory = Memory.model_validate_json(raw).mentioned_again(
                                value, importance, at=now
                            )
                        pipe.multi()
                        pipe.set(memory_key, memory.model_dump_json())
                        pipe.zadd(
                            self._index_key(user_id),
                            {member: memory.last_mentioned_at.timestamp()},
                        )
                        await pipe.execute()
                        return memory
                    except WatchError:
                        continue
        raise StoreError(f"memory.upsert contention on {memory_key}")

    async def query(self, user_id: str, limit: int) -> list[Memory]:
        if limit <= 0:
            return []
        with _translate_errors("memory.query"):
            members = await self._redis.zrange(self._index_key(user_id), 0, -1)
            if not members:
                return []
            keys = []
            for raw_member in members:
                category, _, key = _decode(raw_member).partition(":")
                keys.append(self._memory_key(user_id, category, key))
            raw_rows = await self._redis.mget(keys)

        memories = [Memory.model_validate_json(raw) for raw in raw_rows if raw]
        memories.sort(key=memory_sort_key)
        return memories[:limit]

    async def count(self, user_id: str) -> int:
        with _translate_errors("memory.count"):
            return int(await self._redis.zcard(self._index_key(user_id)))


# ---------------------------------------------------------------------------
# Intimacy
# ---------------------------------------------------------------------------


class RedisIntimacyStore(_RedisStoreBase):
    """``IntimacyStore`` on Redis."""

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = _DEFAULT_PREFIX,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(redis, prefix=prefix)
        self._clock = clock or _utcnow

    def _key(self, user_id: str) -> str:
        return f"{self._prefix}:intimacy:{user_id}"

    async def get(self, user_id: str) -> IntimacyScore:
        with _translate_errors("intimacy.get"):
            raw = await self._redis.get(self._key(user_id))
        if raw is None:
            return IntimacyScore(user_id=user_id)
        return IntimacyScore.model_validate_json(raw)

    async def update(
        self, user_id: str, delta: float, *, max_score: float = 100.0
    ) -> IntimacyScore:
        if delta < 0:
            raise ValueError("delta must be >= 0")
        key = self._key(user_id)
        with _translate_errors("intimacy.update"):
            for _ in range(_MAX_WATCH_RETRIES):
                async with self._redis.pipeline(transaction=True) as pipe:
                    try:
                        await pipe.watch(key)
                        raw = await pipe.get(key)
                        current = (
                            IntimacyScore.model_validate_json(raw)
                            if raw is not None
                            else IntimacyScore(user_id=user_id)
                        )
                        updated = IntimacyScore(
                            user_id=user_id,
                            score=min(max_score, current.score + delta),
                            last_interaction_at=self._clock(),
                        )
                        pipe.multi()
                        pipe.set(key, updated.model_dump_json())
                        await pipe.execute()
                        return updated
                    except WatchError:
                        continue
        raise StoreError(f"intimacy.update contention on {key}")


# ---------------------------------------------------------------------------
# Pattern profiles
# ---------------------------------------------------------------------------


class RedisPatternProfileStore(_RedisStoreBase):
    """``PatternProfileStore`` on Redis."""

    def _key(self, user_id: str) -> str:
        return f"{self._prefix}:profile:{user_id}"

    async def get(self, user_id: str) -> PatternProfile | None:
        with _translate_errors("profile.get"):
            raw = await self._redis.get(self._key(user_id))
        if raw is None:
            return None
        return PatternProfile.model_validate_json(raw)

    async def put(self, profile: PatternProfile) -> None:
        with _translate_errors("profile.put"):
            await self._redis.set(self._key(profile.user_id), profile.model_dump_json())


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class RedisConversationHistory(_RedisStoreBase):
    """``ConversationHistoryProvider`` on Redis, with write support."""

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = _DEFAULT_PREFIX,
        turn_limit: int = 200,
    ) -> None:
        super().__init__(redis, prefix=prefix)
        self._turn_limit = turn_limit

    def _conversation_key(self, conversation_id: str) -> str:
        return f"{self._prefix}:conversation:{conversation_id}"

    def _index_key(self, user_id: str) -> str:
        return f"{self._prefix}:conversations:{user_id}"

    async def save(self, conversation: Conversation) -> None:
        """Insert or replace *conversation*, keeping at most ``turn_limit`` turns."""
        if conversation.user_id is None:
            raise ValueError("conversation.user_id is required")
        if len(conversation.turns) > self._turn_limit:
            conversation = conversation.model_copy(
                update={"turns": conversation.turns[-self._turn_limit :]}
            )
        with _translate_errors("conversation.save"):
            pipe = self._redis.pipeline()
            pipe.set(
                self._conversation_key(conversation.id),
                conversation.model_dump_json(),
            )
            pipe.zadd(
                self._index_key(conversation.user_id),
                {conversation.id: conversation.created_at.timestamp()},
            )
            await pipe.execute()

    async def get(self, user_id: str, conversation_id: str) -> Conversation | None:
        with _translate_errors("conversation.get"):
            raw = await self._redis.get(self._conversation_key(conversation_id))
        if raw is None:
            return None
        conversation = Conversation.model_validate_json(raw)
        if conversation.user_id != user_id:
            return None
        return conversation

    async def list_recent(self, user_id: str, limit: int) -> list[Conversation]:
        if limit <= 0:
            return []
        with _translate_errors("conversation.list_recent"):
            ids = await self._redis.zrevrange(self._index_key(user_id), 0, limit - 1)
            if not ids:
                return []
            raw_rows = await self._redis.mget(
                [self._conversation_key(_decode(cid)) for cid in ids]
            )
        return [Conversation.model_validate_json(raw) for raw in raw_rows if raw]
