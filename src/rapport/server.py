"""Rapport — FastMCP server exposing the personalization engine.

Tools delegate to a ``PersonalizationService`` backed either by in-process
stores (default) or by Redis.  Call ``configure()`` before using the server.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from time import perf_counter

from fastmcp import FastMCP
from pydantic import ValidationError
from redis.asyncio import Redis  # type: ignore[import-untyped]

from rapport.audit import AuditLogger
from rapport.config import AuditConfig
from rapport.config import DirectiveConfig
from rapport.config import IntimacyConfig
from rapport.config import PatternConfig
from rapport.config import RankingConfig
from rapport.config import RedisConfig
from rapport.config import ServiceConfig
from rapport.engine.intimacy import ResponseStyle
from rapport.memory import InMemoryConversationHistory
from rapport.memory import InMemoryIntimacyStore
from rapport.memory import InMemoryMemoryStore
from rapport.memory import InMemoryPatternProfileStore
from rapport.memory import RedisConversationHistory
from rapport.memory import RedisIntimacyStore
from rapport.memory import RedisMemoryStore
from rapport.memory import RedisPatternProfileStore
from rapport.memory import StoreError
from rapport.models.conversation import Conversation
from rapport.models.schemas import ConversationInput
from rapport.models.schemas import ConversationResult
from rapport.models.schemas import DirectiveResult
from rapport.models.schemas import GreetingResult
from rapport.models.schemas import IntimacyResult
from rapport.models.schemas import MemoriesResult
from rapport.models.schemas import TurnResult
from rapport.models.schemas import UserTurnInput
from rapport.observability import record_latency
from rapport.service import PersonalizationService

logger = logging.getLogger(__name__)

mcp = FastMCP("Rapport")

# ---------------------------------------------------------------------------
# Service instance (set via configure())
# ---------------------------------------------------------------------------

_service: PersonalizationService | None = None
_history: InMemoryConversationHistory | RedisConversationHistory | None = None
_redis: Redis | None = None

_DEFAULT_MEMORY_LIMIT = 20


async def configure(
    redis_url: str | None = None,
    *,
    redis_config: RedisConfig | None = None,
    service_config: ServiceConfig | None = None,
    ranking_config: RankingConfig | None = None,
    pattern_config: PatternConfig | None = None,
    intimacy_config: IntimacyConfig | None = None,
    directive_config: DirectiveConfig | None = None,
    audit_config: AuditConfig | None = None,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Build the stores and the service.

    With no *redis_url* everything lives in process memory.  Must be called
    before the MCP tools can function.
    """
    global _service, _history, _redis
    if _service is not None or _redis is not None:
        try:
            await shutdown()
        except RuntimeError:
            # Tests may reconfigure across event loops.
            _service = None
            _history = None
            _redis = None

    if redis_url is None:
        memory_store = InMemoryMemoryStore(clock=clock)
        intimacy_store = InMemoryIntimacyStore(clock=clock)
        profile_store = InMemoryPatternProfileStore()
        history = InMemoryConversationHistory()
    else:
        cfg = redis_config or RedisConfig(url=redis_url)
        _redis = Redis.from_url(redis_url)
        memory_store = RedisMemoryStore(_redis, prefix=cfg.prefix, clock=clock)
        intimacy_store = RedisIntimacyStore(_redis, prefix=cfg.prefix, clock=clock)
        profile_store = RedisPatternProfileStore(_redis, prefix=cfg.prefix)
        history = RedisConversationHistory(
            _redis,
            prefix=cfg.prefix,
            turn_limit=cfg.conversation_turn_limit,
        )

    _history = history
    _service = PersonalizationService(
        memory_store,
        intimacy_store,
        profile_store,
        history,
        config=service_config,
        ranking_config=ranking_config,
        pattern_config=pattern_config,
        intimacy_config=intimacy_config,
        directive_config=directive_config,
        audit_logger=AuditLogger(audit_config or AuditConfig()),
        clock=clock,
    )
    logger.info("rapport configured backend=%s", "memory" if redis_url is None else "redis")


async def shutdown() -> None:
    """Wait for queued turns, close backend clients and release resources."""
    global _service, _history, _redis
    if _service is not None:
        await _service.drain()
        _service = None
    _history = None
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def _get_service() -> PersonalizationService:
    """Return the service instance or raise."""
    if _service is None:
        raise RuntimeError("Rapport not configured. Call configure() first.")
    return _service


def _get_history() -> InMemoryConversationHistory | RedisConversationHistory:
    if _history is None:
        raise RuntimeError("Rapport not configured. Call configure() first.")
    return _history


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0] if exc.errors() else {}
    return str(err.get("msg", "Invalid input"))


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool
async def build_directive(user_id: str, utterance: str = "") -> DirectiveResult:
    """Build the system directive to prepend before generating a reply.

    Never fails: backend errors degrade to the default directive.

    Args:
        user_id: Stable user identifier.
        utterance: Latest user message, used to rank memories.
    """
    start = perf_counter()
    ok = False
    try:
        directive = await _get_service().build_directive(user_id, utterance)
        ok = True
        return DirectiveResult(
            directive=directive.text,
            strategy=directive.strategy.value,
            tier=directive.tier,
            memory_ids=list(directive.memory_ids),
        )
    finally:
        record_latency(
            operation="mcp.build_directive",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def record_user_turn(
    user_id: str,
    utterance: str,
    context: list[dict] | None = None,
    background: bool = False,
) -> TurnResult:
    """Extract memories from a user utterance and update relationship state.

    Args:
        user_id: Stable user identifier.
        utterance: The user's message.
        context: Recent turns ({role, content}) of the current conversation.
        background: Queue the work and return immediately.
    """
    start = perf_counter()
    ok = False
    try:
        service = _get_service()
        try:
            validated = UserTurnInput.model_validate(
                {"user_id": user_id, "utterance": utterance, "context": context}
            )
        except ValidationError as exc:
            return TurnResult(
                status="rejected",
                error_code="validation_error",
                message=_validation_message(exc),
            )

        if background:
            service.schedule_turn(
                validated.user_id, validated.utterance, validated.context
            )
            ok = True
            return TurnResult(status="accepted")

        try:
            outcome = await service.process_turn(
                validated.user_id, validated.utterance, validated.context
            )
        except StoreError as exc:
            return TurnResult(
                status="error", error_code="store_unavailable", message=str(exc)
            )

        ok = True
        return TurnResult(
            memories=outcome.memories,
            intimacy_score=outcome.intimacy_score,
            profile_refreshed=outcome.profile_refreshed,
        )
    finally:
        record_latency(
            operation="mcp.record_user_turn",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def record_conversation(
    user_id: str,
    turns: list[dict],
    conversation_id: str | None = None,
) -> ConversationResult:
    """Store a finished conversation and refresh the user's pattern profile.

    Args:
        user_id: Owner of the conversation.
        turns: Ordered turns, each {role, content[, created_at]}.
        conversation_id: Replace an existing conversation instead of adding one.
    """
    start = perf_counter()
    ok = False
    try:
        service = _get_service()
        history = _get_history()
        try:
            validated = ConversationInput.model_validate(
                {
                    "user_id": user_id,
                    "turns": turns,
                    "conversation_id": conversation_id,
                }
            )
        except ValidationError as exc:
            return ConversationResult(
                status="rejected",
                error_code="validation_error",
                message=_validation_message(exc),
            )

        fields: dict = {"user_id": validated.user_id, "turns": validated.turns}
        if validated.conversation_id:
            fields["id"] = validated.conversation_id
        conversation = Conversation(**fields)

        try:
            await history.save(conversation)
            profile = await service.refresh_patterns(validated.user_id)
        except StoreError as exc:
            return ConversationResult(
                status="error",
                error_code="store_unavailable",
                message=str(exc),
                conversation_id=conversation.id,
            )

        ok = True
        return ConversationResult(conversation_id=conversation.id, profile=profile)
    finally:
        record_latency(
            operation="mcp.record_conversation",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def get_memories(user_id: str, limit: int = _DEFAULT_MEMORY_LIMIT) -> MemoriesResult:
    """List a user's memories, most important first.

    Args:
        user_id: Stable user identifier.
        limit: Maximum number of memories returned.
    """
    start = perf_counter()
    ok = False
    try:
        service = _get_service()
        if limit < 1:
            return MemoriesResult(
                status="rejected",
                error_code="validation_error",
                message="limit must be >= 1",
            )
        try:
            memories = await service.memories.query(user_id, limit)
            total = await service.memories.count(user_id)
        except StoreError as exc:
            return MemoriesResult(
                status="error", error_code="store_unavailable", message=str(exc)
            )
        ok = True
        return MemoriesResult(memories=memories, total=total)
    finally:
        record_latency(
            operation="mcp.get_memories",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def get_intimacy(user_id: str) -> IntimacyResult:
    """Return a user's relationship score, tier and unlocked style flags.

    Args:
        user_id: Stable user identifier.
    """
    start = perf_counter()
    ok = False
    try:
        tracker = _get_service().intimacy
        try:
            score = await tracker.get(user_id)
        except StoreError as exc:
            return IntimacyResult(
                status="error", error_code="store_unavailable", message=str(exc)
            )
        ok = True
        return IntimacyResult(
            score=score,
            tier=tracker.classify(score),
            style=ResponseStyle.for_score(score).flags(),
        )
    finally:
        record_latency(
            operation="mcp.get_intimacy",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )


@mcp.tool
async def proactive_greeting(user_id: str) -> GreetingResult:
    """Greeting for a user opening a new conversation.

    Args:
        user_id: Stable user identifier.
    """
    start = perf_counter()
    ok = False
    try:
        text = await _get_service().greeting(user_id)
        ok = True
        return GreetingResult(greeting=text)
    finally:
        record_latency(
            operation="mcp.proactive_greeting",
            duration_ms=(perf_counter() - start) * 1000,
            ok=ok,
        )
