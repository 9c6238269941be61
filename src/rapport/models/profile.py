"""Per-user conversation style snapshot."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
from enum import StrEnum

from pydantic import BaseModel
from pydantic import Field


class LengthPreference(StrEnum):
    short = "short"
    medium = "medium"
    long = "long"


class ConversationStyle(StrEnum):
    prefers_questions = "prefers_questions"
    prefers_statements = "prefers_statements"
    balanced = "balanced"


class TopicDepthPreference(StrEnum):
    prefers_deep = "prefers_deep"
    prefers_shallow = "prefers_shallow"
    balanced = "balanced"


class FormalityLevel(StrEnum):
    formal = "formal"
    casual = "casual"
    mixed = "mixed"


class ContinuationStyle(StrEnum):
    likes_long_conversations = "likes_long_conversations"
    prefers_brief = "prefers_brief"
    moderate_length = "moderate_length"


class PatternMetrics(BaseModel):
    """The five derived style metrics."""

    model_config = {"frozen": True}

    length_preference: LengthPreference = LengthPreference.medium
    conversation_style: ConversationStyle = ConversationStyle.balanced
    topic_depth_preference: TopicDepthPreference = TopicDepthPreference.balanced
    formality_level: FormalityLevel = FormalityLevel.mixed
    continuation_style: ContinuationStyle = ContinuationStyle.moderate_length

    def informative_count(self) -> int:
        """Count metrics that moved away from their default/balanced value."""
        defaults = PatternMetrics()
        return sum(
            1
            for name in type(self).model_fields
            if getattr(self, name) != getattr(defaults, name)
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PatternProfile(BaseModel):
    """Snapshot of aggregated style statistics.

    Always replaced as a whole; never merged with a previous snapshot.
    """

    model_config = {"frozen": True}

    user_id: str = Field(description="Owner of the profile.")
    metrics: PatternMetrics = Field(default_factory=PatternMetrics)
    confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=0.8,
        description="Share of informative metrics, capped at 0.8.",
    )
    sample_size: int = Field(
        default=0,
        ge=0,
        description="Number of conversations analysed.",
    )
    generated_directive: str = Field(
        default="",
        description="Directive text rendered from the metrics.",
    )
    updated_at: datetime = Field(default_factory=_utcnow)
