"""Application configuration dataclasses.

Frozen dataclasses with sensible defaults for each subsystem.
No env-var loading or YAML parsing: plain defaults that can
be overridden at construction time.

Marker collections are tuples so every config object stays immutable
and hashable once built.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RankingConfig:
    """Weights and windows for relevance ranking of stored memories."""

    direct_match_weight: float = 0.8
    category_hint_weight: float = 0.6
    importance_weight: float = 0.1
    max_importance: int = 5
    recent_window_days: float = 7.0
    recent_bonus: float = 0.3
    stale_window_days: float = 30.0
    stale_bonus: float = 0.1
    min_score: float = 0.3
    max_score: float = 1.0
    default_limit: int = 5
    # Category -> markers in the utterance that hint at that category
    category_markers: tuple[tuple[str, tuple[str, ...]], ...] = (
        ("hobby", ("취미", "여가")),
        ("work", ("일", "회사")),
    )

    def markers_for(self, category: str) -> tuple[str, ...]:
        for name, markers in self.category_markers:
            if name == category:
                return markers
        return ()


@dataclass(frozen=True)
class EngagementConfig:
    """Heuristic weights for scoring one user reply."""

    length_steps: tuple[tuple[int, float], ...] = ((10, 0.2), (30, 0.2), (50, 0.1))
    question_bonus: float = 0.3
    continuity_bonus: float = 0.2
    gratitude_bonus: float = 0.3
    short_reply_length: int = 5
    short_reply_penalty: float = 0.4
    question_markers: tuple[str, ...] = ("?", "어떻게", "왜", "뭐")
    continuity_markers: tuple[str, ...] = ("그런데", "근데", "그래서")
    gratitude_markers: tuple[str, ...] = ("고마워", "감사", "도움")
    acknowledgments: tuple[str, ...] = ("응", "그래", "아", "음", "ㅇㅇ")


@dataclass(frozen=True)
class PatternConfig:
    """Thresholds for conversation-pattern aggregation."""

    min_conversations: int = 5
    history_limit: int = 20
    min_pairs: int = 5
    min_bucket_samples: int = 5
    short_reply_max: int = 50
    long_reply_min: int = 150
    style_gap: float = 0.2
    depth_gap: float = 0.15
    deep_turn_count: int = 6
    deep_user_length: float = 30.0
    formal_ratio: float = 0.6
    casual_ratio: float = 0.2
    long_conversation_turns: float = 8.0
    brief_conversation_turns: float = 4.0
    max_confidence: float = 0.8
    assistant_question_markers: tuple[str, ...] = ("?", "어떤", "무엇", "언제")
    formal_markers: tuple[str, ...] = ("습니다", "해주세요", "부탁드립니다", "감사합니다")
    casual_markers: tuple[str, ...] = ("ㅋㅋ", "ㅎㅎ", "~", "야")
    engagement: EngagementConfig = EngagementConfig()


@dataclass(frozen=True)
class IntimacyConfig:
    """Score bounds and tier thresholds for the relationship tracker."""

    max_score: float = 100.0
    acquainted_threshold: float = 20.0
    close_threshold: float = 40.0
    intimate_threshold: float = 70.0
    turn_delta: float = 1.0

    def __post_init__(self) -> None:
        # IntimacyScore.score is bounded to [0, 100]
        if not 0.0 < self.max_score <= 100.0:
            raise ValueError(f"max_score must be in (0, 100], got {self.max_score}")


@dataclass(frozen=True)
class DirectiveConfig:
    """Selection thresholds for directive strategies."""

    pattern_min_confidence: float = 0.3
    max_memories: int = 5
    memory_candidates: int = 10


@dataclass(frozen=True)
class ServiceConfig:
    """Cadence settings for the per-turn personalization service."""

    refresh_every_user_turns: int = 5
    greeting_min_importance: int = 3


@dataclass(frozen=True)
class RedisConfig:
    """Settings for the Redis-backed stores."""

    url: str = "redis://localhost:6379"
    prefix: str = "rapport"
    conversation_turn_limit: int = 200


@dataclass(frozen=True)
class AuditConfig:
    """Settings for the JSONL audit logger."""

    file_path: str = "rapport_audit.jsonl"
    enabled: bool = True
