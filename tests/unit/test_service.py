"""Unit tests for the per-turn personalization service."""

from __future__ import annotations

import logging

import pytest

from rapport.audit import AuditEventType
from rapport.audit import AuditLogger
from rapport.config import IntimacyConfig
from rapport.config import ServiceConfig
from rapport.engine.directive import DirectiveStrategy
from rapport.engine.templates import DEFAULT_DIRECTIVE
from rapport.engine.templates import GENERIC_FOLLOW_UP
from rapport.memory.store import StoreError
from rapport.models.intimacy import IntimacyTier
from rapport.models.profile import LengthPreference
from rapport.observability import latency_metrics_snapshot
from rapport.service import PersonalizationService
from tests.helpers.builders import short_reply_history


class _FailingMemoryStore:
    """MemoryStore whose every call fails like an unreachable backend."""

    async def upsert(self, user_id, category, key, value, importance):
        raise StoreError("memory backend down")

    async def query(self, user_id, limit):
        raise StoreError("memory backend down")

    async def count(self, user_id):
        raise StoreError("memory backend down")


class _FailingIntimacyStore:
    async def get(self, user_id):
        raise StoreError("intimacy backend down")

    async def update(self, user_id, delta, *, max_score=100.0):
        raise StoreError("intimacy backend down")


class _FlakyHistory:
    """ConversationHistoryProvider whose reads fail until ``failing`` is cleared."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.failing = True

    async def list_recent(self, user_id, limit):
        if self.failing:
            raise StoreError("history backend down")
        return await self.inner.list_recent(user_id, limit)


async def _seed_history(history, user_id: str = "u1") -> None:
    for conv in short_reply_history(user_id):
        await history.save(conv)


# ---------------------------------------------------------------------------
# build_directive
# ---------------------------------------------------------------------------


class TestBuildDirective:
    async def test_new_user_gets_default(self, service):
        directive = await service.build_directive("u1", "안녕")
        assert directive.strategy == DirectiveStrategy.default
        assert directive.text == DEFAULT_DIRECTIVE

    async def test_store_error_degrades_to_default(
        self, profile_store, history, audit_config, caplog
    ):
        service = PersonalizationService(
            _FailingMemoryStore(),
            _FailingIntimacyStore(),
            profile_store,
            history,
            audit_logger=AuditLogger(audit_config),
        )
        with caplog.at_level(logging.WARNING, logger="rapport.service"):
            directive = await service.build_directive("u1", "헬스")
        assert directive.strategy == DirectiveStrategy.default
        assert "directive degraded to default" in caplog.text

    async def test_unexpected_error_degrades_to_default(self, service, monkeypatch):
        async def boom(user_id, utterance=""):
            raise RuntimeError("bug")

        monkeypatch.setattr(service.synthesizer, "build", boom)
        directive = await service.build_directive("u1")
        assert directive.strategy == DirectiveStrategy.default

    async def test_intimate_after_enough_turns(self, service, intimacy_store):
        await service.process_turn("u1", "오늘 헬스 다녀왔어")
        await intimacy_store.update("u1", 25.0)
        directive = await service.build_directive("u1", "헬스 또 갈까")
        assert directive.strategy == DirectiveStrategy.intimate
        assert directive.tier == IntimacyTier.acquainted

    async def test_pattern_after_refresh(self, service, history):
        await _seed_history(history)
        profile = await service.refresh_patterns("u1")
        assert profile.confidence > 0.3
        directive = await service.build_directive("u1")
        assert directive.strategy == DirectiveStrategy.pattern
        assert directive.text == profile.generated_directive

    async def test_records_latency(self, service):
        await service.build_directive("u1")
        assert latency_metrics_snapshot()["directive.build"]["count"] == 1

    async def test_audits_directive(self, service, audit_config):
        await service.build_directive("u1")
        events = await AuditLogger(audit_config).read_events(
            event_type=AuditEventType.DIRECTIVE_BUILT
        )
        assert len(events) == 1
        assert events[0].user_id == "u1"
        assert events[0].payload["strategy"] == "default"


# ---------------------------------------------------------------------------
# process_turn
# ---------------------------------------------------------------------------


class TestProcessTurn:
    async def test_extracts_and_persists(self, service, memory_store):
        outcome = await service.process_turn("u1", "오늘 헬스 다녀왔어")
        keys = {(m.category.value, m.key) for m in outcome.memories}
        assert ("hobby", "sports") in keys
        assert await memory_store.count("u1") == len(outcome.candidates)

    async def test_twice_increments_mention_count(self, service, memory_store):
        await service.process_turn("u1", "오늘 헬스 다녀왔어")
        await service.process_turn("u1", "오늘 헬스 다녀왔어")
        memory = await memory_store.get("u1", "hobby", "sports")
        assert memory.mention_count == 2
        assert memory.importance == 3

    async def test_intimacy_grows_once_per_productive_turn(self, service, intimacy_store):
        outcome = await service.process_turn("u1", "엄마랑 여행 가고 싶어")
        assert len(outcome.candidates) > 1
        assert outcome.intimacy_score == 1.0
        assert (await intimacy_store.get("u1")).score == 1.0

    async def test_no_candidates_no_intimacy(self, service, intimacy_store):
        outcome = await service.process_turn("u1", "ㅋㅋㅋ")
        assert outcome.candidates == []
        assert outcome.intimacy_score is None
        assert (await intimacy_store.get("u1")).score == 0.0

    async def test_custom_turn_delta(
        self, memory_store, intimacy_store, profile_store, history
    ):
        service = PersonalizationService(
            memory_store,
            intimacy_store,
            profile_store,
            history,
            intimacy_config=IntimacyConfig(turn_delta=2.5),
        )
        outcome = await service.process_turn("u1", "헬스")
        assert outcome.intimacy_score == 2.5

    async def test_store_errors_propagate(self, profile_store, history):
        service = PersonalizationService(
            _FailingMemoryStore(), _FailingIntimacyStore(), profile_store, history
        )
        with pytest.raises(StoreError):
            await service.process_turn("u1", "헬스")

    async def test_audits_upserts_and_intimacy(self, service, audit_config):
        await service.process_turn("u1", "헬스")
        logger = AuditLogger(audit_config)
        upserts = await logger.read_events(event_type=AuditEventType.MEMORY_UPSERTED)
        intimacy = await logger.read_events(event_type=AuditEventType.INTIMACY_UPDATED)
        assert [e.payload["key"] for e in upserts] == ["sports"]
        assert intimacy[0].payload["score"] == 1.0


# ---------------------------------------------------------------------------
# Pattern refresh cadence
# ---------------------------------------------------------------------------


class TestPatternRefresh:
    async def test_refresh_every_fifth_turn(self, service, history, profile_store):
        await _seed_history(history)
        for i in range(4):
            outcome = await service.process_turn("u1", "그렇구나")
            assert outcome.profile_refreshed is False
        outcome = await service.process_turn("u1", "그렇구나")
        assert outcome.profile_refreshed is True
        stored = await profile_store.get("u1")
        assert stored.metrics.length_preference == LengthPreference.short

    async def test_counter_is_per_user(self, service, history):
        await _seed_history(history, "u1")
        for _ in range(4):
            await service.process_turn("u1", "그렇구나")
        outcome = await service.process_turn("u2", "그렇구나")
        assert outcome.profile_refreshed is False

    async def test_history_failure_keeps_turn_and_retries(
        self, memory_store, intimacy_store, profile_store, history, caplog
    ):
        flaky = _FlakyHistory(history)
        service = PersonalizationService(
            memory_store,
            intimacy_store,
            profile_store,
            flaky,
            config=ServiceConfig(refresh_every_user_turns=5),
        )
        await _seed_history(history)

        with caplog.at_level(logging.WARNING, logger="rapport.service"):
            for _ in range(5):
                outcome = await service.process_turn("u1", "오늘 헬스 다녀왔어")
        assert "pattern refresh failed" in caplog.text
        assert outcome.profile_refreshed is False
        assert outcome.memories
        assert outcome.intimacy_score == 5.0
        assert await profile_store.get("u1") is None

        flaky.failing = False
        outcome = await service.process_turn("u1", "그렇구나")
        assert outcome.profile_refreshed is True
        assert await profile_store.get("u1") is not None

        outcome = await service.process_turn("u1", "그렇구나")
        assert outcome.profile_refreshed is False

    async def test_insufficient_history_is_not_an_error(self, service, profile_store):
        assert await service.refresh_patterns("u1") is None
        assert await profile_store.get("u1") is None

    async def test_refresh_disabled(
        self, memory_store, intimacy_store, profile_store, history
    ):
        service = PersonalizationService(
            memory_store,
            intimacy_store,
            profile_store,
            history,
            config=ServiceConfig(refresh_every_user_turns=0),
        )
        await _seed_history(history)
        for _ in range(6):
            outcome = await service.process_turn("u1", "그렇구나")
            assert outcome.profile_refreshed is False

    async def test_refresh_replaces_snapshot_and_audits(
        self, service, history, audit_config
    ):
        await _seed_history(history)
        await service.refresh_patterns("u1")
        await service.refresh_patterns("u1")
        events = await AuditLogger(audit_config).read_events(
            event_type=AuditEventType.PATTERN_PROFILE_REPLACED
        )
        assert len(events) == 2
        assert events[0].payload["sample_size"] == 7


# ---------------------------------------------------------------------------
# Background scheduling
# ---------------------------------------------------------------------------


class TestScheduleTurn:
    async def test_runs_in_background(self, service, memory_store):
        task = service.schedule_turn("u1", "오늘 헬스 다녀왔어")
        await service.drain()
        assert task.done()
        assert await memory_store.count("u1") >= 1
        assert service.pending_turns == 0

    async def test_failures_are_logged_not_raised(self, profile_store, history, caplog):
        service = PersonalizationService(
            _FailingMemoryStore(), _FailingIntimacyStore(), profile_store, history
        )
        with caplog.at_level(logging.ERROR, logger="rapport.service"):
            task = service.schedule_turn("u1", "헬스")
            await service.drain()
        assert task.result() is None
        assert "background turn processing failed" in caplog.text

    async def test_reply_path_unaffected_by_background_failure(
        self, profile_store, history
    ):
        service = PersonalizationService(
            _FailingMemoryStore(), _FailingIntimacyStore(), profile_store, history
        )
        service.schedule_turn("u1", "헬스")
        directive = await service.build_directive("u1", "헬스")
        await service.drain()
        assert directive.strategy == DirectiveStrategy.default


# ---------------------------------------------------------------------------
# Greeting
# ---------------------------------------------------------------------------


class TestGreeting:
    async def test_uses_recent_memory(self, service, clock):
        await service.process_turn("u1", "헬스")
        greeting = await service.greeting("u1")
        assert "헬스 요즘 어때?" in greeting

    async def test_falls_back_when_store_fails(self, profile_store, history, clock):
        service = PersonalizationService(
            _FailingMemoryStore(), _FailingIntimacyStore(), profile_store, history,
            clock=clock,
        )
        greeting = await service.greeting("u1")
        assert greeting.endswith(GENERIC_FOLLOW_UP)
