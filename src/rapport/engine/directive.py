"""Directive synthesis with fixed strategy precedence.

1. intimate: relationship tier at least ``acquainted`` and ≥1 stored memory
2. pattern: stored pattern profile with confidence above the threshold
3. default: static, user-independent text

Store failures propagate as ``StoreError``; degrading to the default
directive is the caller's job (see ``PersonalizationService``).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

from rapport.config import DirectiveConfig
from rapport.config import IntimacyConfig
from rapport.engine.intimacy import classify_tier
from rapport.engine.intimacy import ResponseStyle
from rapport.engine.ranking import RelevanceRanker
from rapport.engine.templates import DEFAULT_DIRECTIVE
from rapport.engine.templates import render_intimate_directive
from rapport.memory.store import IntimacyStore
from rapport.memory.store import MemoryStore
from rapport.memory.store import PatternProfileStore
from rapport.models.intimacy import IntimacyTier
from rapport.models.memory import Memory
from rapport.models.profile import PatternProfile


class DirectiveStrategy(StrEnum):
    """Which rule produced a directive."""

    intimate = "intimate"
    pattern = "pattern"
    default = "default"


@dataclass(frozen=True)
class Directive:
    """Plain-text steering directive and the strategy that produced it."""

    text: str
    strategy: DirectiveStrategy
    tier: IntimacyTier = IntimacyTier.new
    memory_ids: tuple[str, ...] = ()


def default_directive() -> Directive:
    return Directive(text=DEFAULT_DIRECTIVE, strategy=DirectiveStrategy.default)


class DirectiveSynthesizer:
    """Compose relationship, memory and pattern state into one directive."""

    def __init__(
        self,
        memory_store: MemoryStore,
        intimacy_store: IntimacyStore,
        profile_store: PatternProfileStore,
        *,
        ranker: RelevanceRanker | None = None,
        config: DirectiveConfig | None = None,
        intimacy_config: IntimacyConfig | None = None,
    ) -> None:
        self._memories = memory_store
        self._intimacy = intimacy_store
        self._profiles = profile_store
        self._ranker = ranker or RelevanceRanker()
        self._config = config or DirectiveConfig()
        self._intimacy_config = intimacy_config or IntimacyConfig()

    async def build(self, user_id: str, utterance: str = "") -> Directive:
        """Read the user's persisted state and return the winning directive."""
        score = (await self._intimacy.get(user_id)).score
        tier = classify_tier(score, self._intimacy_config)

        memories: list[Memory] = []
        if tier.at_least(IntimacyTier.acquainted) and await self._memories.count(user_id):
            memories = await self._memories.query(
                user_id, self._config.memory_candidates
            )

        profile = None
        if not memories:
            profile = await self._profiles.get(user_id)

        return self.synthesize(
            score=score,
            utterance=utterance,
            memories=memories,
            profile=profile,
        )

    def synthesize(
        self,
        *,
        score: float,
        utterance: str = "",
        memories: Sequence[Memory] = (),
        profile: PatternProfile | None = None,
    ) -> Directive:
        """Apply the precedence rules to already-loaded state."""
        tier = classify_tier(score, self._intimacy_config)

        if tier.at_least(IntimacyTier.acquainted) and memories:
            selected = self._select_memories(utterance, memories)
            text = render_intimate_directive(
                tier,
                selected,
                ResponseStyle.for_score(score).flags(),
            )
            return Directive(
                text=text,
                strategy=DirectiveStrategy.intimate,
                tier=tier,
                memory_ids=tuple(m.id for m in selected),
            )

        if (
            profile is not None
            and profile.generated_directive
            and profile.confidence > self._config.pattern_min_confidence
        ):
            return Directive(
                text=profile.generated_directive,
                strategy=DirectiveStrategy.pattern,
                tier=tier,
            )

        return Directive(text=DEFAULT_DIRECTIVE, strategy=DirectiveStrategy.default, tier=tier)

    def _select_memories(
        self, utterance: str, memories: Sequence[Memory]
    ) -> list[Memory]:
        limit = self._config.max_memories
        ranked = self._ranker.rank(utterance, memories, limit=limit)
        if ranked:
            return [c.memory for c in ranked]
        # Nothing cleared the relevance bar; keep the store's importance order
        return list(memories[:limit])
