"""Conversation-pattern aggregation.

Derives a per-user style profile from recent conversation history using
deterministic engagement heuristics.  Nothing here is trained; the same
history always produces the same profile.
"""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from datetime import UTC
from statistics import fmean
from typing import Any

from pydantic import ValidationError

from rapport.config import EngagementConfig
from rapport.config import PatternConfig
from rapport.engine.templates import render_pattern_directive
from rapport.models.conversation import Conversation
from rapport.models.conversation import Role
from rapport.models.conversation import Turn
from rapport.models.profile import ContinuationStyle
from rapport.models.profile import ConversationStyle
from rapport.models.profile import FormalityLevel
from rapport.models.profile import LengthPreference
from rapport.models.profile import PatternMetrics
from rapport.models.profile import PatternProfile
from rapport.models.profile import TopicDepthPreference


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------


def measure_engagement(content: str, config: EngagementConfig | None = None) -> float:
    """Estimate in [0, 1] how engaged a user reply is."""
    cfg = config or EngagementConfig()
    if not isinstance(content, str):
        return 0.0

    length = len(content)
    engagement = 0.0
    for threshold, bonus in cfg.length_steps:
        if length > threshold:
            engagement += bonus

    if any(m in content for m in cfg.question_markers):
        engagement += cfg.question_bonus
    if any(m in content for m in cfg.continuity_markers):
        engagement += cfg.continuity_bonus
    if any(m in content for m in cfg.gratitude_markers):
        engagement += cfg.gratitude_bonus

    if length < cfg.short_reply_length or content.strip() in cfg.acknowledgments:
        engagement = max(0.0, engagement - cfg.short_reply_penalty)

    return min(1.0, engagement)


@dataclass(frozen=True)
class ReplyPair:
    """An assistant turn and the user reply that immediately follows it."""

    assistant: Turn
    user: Turn
    engagement: float


def _mean(values: Sequence[float]) -> float:
    return fmean(values) if values else 0.0


def _as_conversation(user_id: str, item: Any) -> Conversation | None:
    """Coerce one history item, or ``None`` when it cannot be read.

    Accepts a ``Conversation``, its dict form, or a bare list of turns.
    """
    if isinstance(item, Conversation):
        return item
    try:
        if isinstance(item, dict):
            return Conversation.model_validate(item)
        if isinstance(item, (list, tuple)):
            return Conversation(
                user_id=user_id,
                turns=[Turn.model_validate(t) for t in item],
            )
    except ValidationError:
        return None
    return None


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class PatternAnalyzer:
    """Aggregate conversation history into a ``PatternProfile``."""

    def __init__(
        self,
        config: PatternConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or PatternConfig()
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    @property
    def config(self) -> PatternConfig:
        return self._config

    def engagement(self, turn: Turn) -> float:
        return measure_engagement(turn.content, self._config.engagement)

    def analyze(
        self,
        user_id: str,
        conversations: Sequence[Conversation] | None,
        *,
        now: datetime | None = None,
    ) -> PatternProfile | None:
        """Return a fresh profile, or ``None`` when history is too short."""
        if isinstance(conversations, (str, bytes)) or not isinstance(
            conversations, Sequence
        ):
            conversations = []
        convs = [
            c
            for c in (_as_conversation(user_id, item) for item in conversations)
            if c is not None and c.turns
        ]
        if len(convs) < self._config.min_conversations:
            return None

        metrics = self.compute_metrics(convs)
        confidence = self.confidence(metrics)
        return PatternProfile(
            user_id=user_id,
            metrics=metrics,
            confidence=confidence,
            sample_size=len(convs),
            generated_directive=render_pattern_directive(metrics),
            updated_at=now or self._clock(),
        )

    def compute_metrics(self, conversations: Sequence[Conversation]) -> PatternMetrics:
        pairs = self.reply_pairs(conversations)
        return PatternMetrics(
            length_preference=self.length_preference(pairs),
            conversation_style=self.conversation_style(pairs),
            topic_depth_preference=self.topic_depth_preference(conversations),
            formality_level=self.formality_level(conversations),
            continuation_style=self.continuation_style(conversations),
        )

    def confidence(self, metrics: PatternMetrics) -> float:
        total = len(PatternMetrics.model_fields)
        return (metrics.informative_count() / total) * self._config.max_confidence

    # -- pairing --

    def reply_pairs(self, conversations: Sequence[Conversation]) -> list[ReplyPair]:
        pairs: list[ReplyPair] = []
        for conv in conversations:
            for current, following in zip(conv.turns, conv.turns[1:]):
                if current.role == Role.assistant and following.role == Role.user:
                    pairs.append(
                        ReplyPair(
                            assistant=current,
                            user=following,
                            engagement=self.engagement(following),
                        )
                    )
        return pairs

    # -- metrics --

    def length_preference(self, pairs: Sequence[ReplyPair]) -> LengthPreference:
        cfg = self._config
        if len(pairs) < cfg.min_pairs:
            return LengthPreference.medium

        buckets: dict[LengthPreference, list[float]] = {
            LengthPreference.short: [],
            LengthPreference.medium: [],
            LengthPreference.long: [],
        }
        for pair in pairs:
            size = len(pair.assistant.content)
            if size < cfg.short_reply_max:
                buckets[LengthPreference.short].append(pair.engagement)
            elif size < cfg.long_reply_min:
                buckets[LengthPreference.medium].append(pair.engagement)
            else:
                buckets[LengthPreference.long].append(pair.engagement)

        eligible = [
            (_mean(scores), bucket)
            for bucket, scores in buckets.items()
            if len(scores) >= cfg.min_bucket_samples
        ]
        if not eligible:
            return LengthPreference.medium
        # max() keeps the first bucket on ties: short, medium, long
        return max(eligible, key=lambda item: item[0])[1]

    def conversation_style(self, pairs: Sequence[ReplyPair]) -> ConversationStyle:
        markers = self._config.assistant_question_markers
        after_questions: list[float] = []
        after_statements: list[float] = []
        for pair in pairs:
            if any(m in pair.assistant.content for m in markers):
                after_questions.append(pair.engagement)
            else:
                after_statements.append(pair.engagement)

        if not after_questions and not after_statements:
            return ConversationStyle.balanced

        gap = _mean(after_questions) - _mean(after_statements)
        if gap > self._config.style_gap:
            return ConversationStyle.prefers_questions
        if -gap > self._config.style_gap:
            return ConversationStyle.prefers_statements
        return ConversationStyle.balanced

    def topic_depth_preference(
        self, conversations: Sequence[Conversation]
    ) -> TopicDepthPreference:
        cfg = self._config
        deep: list[float] = []
        shallow: list[float] = []
        for conv in conversations:
            user_turns = conv.user_turns()
            mean_length = _mean([len(t.content) for t in user_turns])
            engagement = _mean([self.engagement(t) for t in user_turns])
            if len(conv.turns) > cfg.deep_turn_count or mean_length > cfg.deep_user_length:
                deep.append(engagement)
            else:
                shallow.append(engagement)

        if not deep and not shallow:
            return TopicDepthPreference.balanced

        gap = _mean(deep) - _mean(shallow)
        if gap > cfg.depth_gap:
            return TopicDepthPreference.prefers_deep
        if -gap > cfg.depth_gap:
            return TopicDepthPreference.prefers_shallow
        return TopicDepthPreference.balanced

    def formality_level(self, conversations: Sequence[Conversation]) -> FormalityLevel:
        cfg = self._config
        formal = 0
        casual = 0
        for conv in conversations:
            for turn in conv.user_turns():
                if any(m in turn.content for m in cfg.formal_markers):
                    formal += 1
                elif any(m in turn.content for m in cfg.casual_markers):
                    casual += 1

        ratio = formal / (formal + casual + 1)
        if ratio > cfg.formal_ratio:
            return FormalityLevel.formal
        if ratio < cfg.casual_ratio:
            return FormalityLevel.casual
        return FormalityLevel.mixed

    def continuation_style(
        self, conversations: Sequence[Conversation]
    ) -> ContinuationStyle:
        mean_turns = _mean([len(c.turns) for c in conversations])
        if mean_turns > self._config.long_conversation_turns:
            return ContinuationStyle.likes_long_conversations
        if mean_turns < self._config.brief_conversation_turns:
            return ContinuationStyle.prefers_brief
        return ContinuationStyle.moderate_length
