"""Per-turn personalization service.

Wires the engine components to the injected stores and implements the caller
contract for one chat turn:

- ``build_directive`` runs before the reply and never raises; any store
  failure degrades to the static default directive.
- ``schedule_turn`` runs extraction, persistence, the intimacy update and the
  periodic pattern refresh as a fire-and-forget task.  Failures there are
  logged and never reach the reply path.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import UTC

from rapport.audit import AuditEventType
from rapport.audit import AuditLogger
from rapport.config import DirectiveConfig
from rapport.config import IntimacyConfig
from rapport.config import PatternConfig
from rapport.config import RankingConfig
from rapport.config import ServiceConfig
from rapport.engine.directive import default_directive
from rapport.engine.directive import Directive
from rapport.engine.directive import DirectiveSynthesizer
from rapport.engine.extraction import MemoryExtractor
from rapport.engine.greeting import compose_greeting
from rapport.engine.greeting import time_of_day_opener
from rapport.engine.intimacy import IntimacyTracker
from rapport.engine.lexicon import MemoryLexicon
from rapport.engine.patterns import PatternAnalyzer
from rapport.engine.ranking import RelevanceRanker
from rapport.engine.templates import GENERIC_FOLLOW_UP
from rapport.memory.store import ConversationHistoryProvider
from rapport.memory.store import IntimacyStore
from rapport.memory.store import MemoryStore
from rapport.memory.store import PatternProfileStore
from rapport.memory.store import StoreError
from rapport.models.conversation import Turn
from rapport.models.memory import Memory
from rapport.models.memory import MemoryCandidate
from rapport.models.profile import PatternProfile
from rapport.observability import track_latency

logger = logging.getLogger(__name__)

# Upper bound on memories scanned when composing a greeting
_GREETING_SCAN_LIMIT = 50


@dataclass(frozen=True)
class TurnOutcome:
    """What the background path did for one user utterance."""

    user_id: str
    candidates: list[MemoryCandidate] = field(default_factory=list)
    memories: list[Memory] = field(default_factory=list)
    intimacy_score: float | None = None
    profile: PatternProfile | None = None
    profile_refreshed: bool = False


class PersonalizationService:
    """Facade used by the chat handler on every turn."""

    def __init__(
        self,
        memory_store: MemoryStore,
        intimacy_store: IntimacyStore,
        profile_store: PatternProfileStore,
        history: ConversationHistoryProvider,
        *,
        lexicon: MemoryLexicon | None = None,
        config: ServiceConfig | None = None,
        ranking_config: RankingConfig | None = None,
        pattern_config: PatternConfig | None = None,
        intimacy_config: IntimacyConfig | None = None,
        directive_config: DirectiveConfig | None = None,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._memories = memory_store
        self._profiles = profile_store
        self._history = history
        self._config = config or ServiceConfig()
        self._pattern_config = pattern_config or PatternConfig()
        self._intimacy_config = intimacy_config or IntimacyConfig()
        self._audit = audit_logger
        self._clock = clock or (lambda: datetime.now(tz=UTC))

        self.extractor = MemoryExtractor(lexicon)
        self.ranker = RelevanceRanker(ranking_config, clock=self._clock)
        self.analyzer = PatternAnalyzer(self._pattern_config, clock=self._clock)
        self.intimacy = IntimacyTracker(intimacy_store, self._intimacy_config)
        self.synthesizer = DirectiveSynthesizer(
            memory_store,
            intimacy_store,
            profile_store,
            ranker=self.ranker,
            config=directive_config,
            intimacy_config=self._intimacy_config,
        )

        self._turns_since_refresh: dict[str, int] = {}
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Before the reply
    # ------------------------------------------------------------------

    async def build_directive(self, user_id: str, utterance: str = "") -> Directive:
        """Return the directive to prepend to the outbound message list."""
        directive = default_directive()
        try:
            with track_latency("directive.build"):
                directive = await self.synthesizer.build(user_id, utterance)
        except StoreError as exc:
            logger.warning(
                "directive degraded to default user_id=%s error=%s", user_id, exc
            )
        except Exception:
            logger.exception("directive build failed user_id=%s", user_id)

        await self._audit_safely(
            AuditEventType.DIRECTIVE_BUILT,
            user_id=user_id,
            strategy=directive.strategy.value,
            tier=directive.tier.value,
            memory_ids=list(directive.memory_ids),
        )
        return directive

    async def greeting(self, user_id: str, now: datetime | None = None) -> str:
        """Proactive greeting for a user opening a new conversation."""
        moment = now or self._clock()
        try:
            memories = await self._memories.query(user_id, _GREETING_SCAN_LIMIT)
        except Exception:
            logger.exception("greeting fell back to generic user_id=%s", user_id)
            return f"{time_of_day_opener(moment)} {GENERIC_FOLLOW_UP}"
        return compose_greeting(
            memories,
            moment,
            min_importance=self._config.greeting_min_importance,
        )

    # ------------------------------------------------------------------
    # After the utterance
    # ------------------------------------------------------------------

    def schedule_turn(
        self,
        user_id: str,
        utterance: str,
        context: Sequence[Turn] | None = None,
    ) -> asyncio.Task:
        """Queue background processing of *utterance* and return immediately."""
        task = asyncio.create_task(
            self._process_turn_safely(user_id, utterance, context),
            name=f"rapport-turn-{user_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled turn to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    @property
    def memories(self) -> MemoryStore:
        return self._memories

    @property
    def pending_turns(self) -> int:
        return len(self._tasks)

    async def _process_turn_safely(
        self,
        user_id: str,
        utterance: str,
        context: Sequence[Turn] | None,
    ) -> TurnOutcome | None:
        try:
            return await self.process_turn(user_id, utterance, context)
        except Exception:
            logger.exception("background turn processing failed user_id=%s", user_id)
            return None

    async def process_turn(
        self,
        user_id: str,
        utterance: str,
        context: Sequence[Turn] | None = None,
    ) -> TurnOutcome:
        """Extract, persist and update state for one user utterance.

        Memory and intimacy store failures propagate; ``schedule_turn`` is the
        non-raising entry point.  A failed pattern refresh is logged and
        retried on the next turn.
        """
        with track_latency("turn.process"):
            candidates = self.extractor.extract(utterance, context)
            memories: list[Memory] = []
            for candidate in candidates:
                memory = await self._memories.upsert(
                    user_id,
                    candidate.category,
                    candidate.key,
                    candidate.value,
                    candidate.importance,
                )
                memories.append(memory)
                await self._audit_safely(
                    AuditEventType.MEMORY_UPSERTED,
                    user_id=user_id,
                    category=memory.category.value,
                    key=memory.key,
                    mention_count=memory.mention_count,
                    importance=memory.importance,
                )

            score = None
            if candidates:
                score = await self.intimacy.update(
                    user_id, self._intimacy_config.turn_delta
                )
                await self._audit_safely(
                    AuditEventType.INTIMACY_UPDATED, user_id=user_id, score=score
                )

            profile = None
            refreshed = False
            if self._count_turn(user_id):
                try:
                    profile = await self.refresh_patterns(user_id)
                except StoreError as exc:
                    # Counter stays due, the next turn retries
                    logger.warning(
                        "pattern refresh failed user_id=%s error=%s", user_id, exc
                    )
                else:
                    self._turns_since_refresh[user_id] = 0
                    refreshed = profile is not None

        logger.debug(
            "turn processed user_id=%s candidates=%d refreshed=%s",
            user_id,
            len(candidates),
            refreshed,
        )
        return TurnOutcome(
            user_id=user_id,
            candidates=candidates,
            memories=memories,
            intimacy_score=score,
            profile=profile,
            profile_refreshed=refreshed,
        )

    async def refresh_patterns(self, user_id: str) -> PatternProfile | None:
        """Recompute and replace the user's pattern profile.

        Returns ``None`` when history is still too short; that is not an
        error.  History read failures propagate as ``StoreError``.
        """
        conversations = await self._history.list_recent(
            user_id, self._pattern_config.history_limit
        )
        profile = self.analyzer.analyze(user_id, conversations)
        if profile is None:
            logger.debug(
                "pattern refresh skipped, insufficient data user_id=%s conversations=%d",
                user_id,
                len(conversations),
            )
            return None

        await self._profiles.put(profile)
        await self._audit_safely(
            AuditEventType.PATTERN_PROFILE_REPLACED,
            user_id=user_id,
            confidence=profile.confidence,
            sample_size=profile.sample_size,
            metrics=profile.metrics.model_dump(mode="json"),
        )
        return profile

    # -- internal --

    def _count_turn(self, user_id: str) -> bool:
        """Advance the per-user cadence counter; True when a refresh is due.

        The counter is reset by the caller once the refresh has gone through.
        """
        every = self._config.refresh_every_user_turns
        if every <= 0:
            return False
        seen = self._turns_since_refresh.get(user_id, 0) + 1
        self._turns_since_refresh[user_id] = seen
        return seen >= every

    async def _audit_safely(
        self, event_type: AuditEventType, *, user_id: str, **payload
    ) -> None:
        if self._audit is None:
            return
        try:
            await self._audit.record(event_type, user_id=user_id, **payload)
        except OSError:
            logger.exception("audit write failed event_type=%s", event_type.value)
