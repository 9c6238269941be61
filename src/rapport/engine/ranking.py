"""Relevance ranking of stored memories against the current utterance."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from datetime import UTC

from rapport.config import RankingConfig
from rapport.models.memory import Memory

_SECONDS_PER_DAY = 60 * 60 * 24


@dataclass(frozen=True)
class RelevanceCandidate:
    """A memory paired with its per-request relevance score."""

    memory: Memory
    score: float


class RelevanceRanker:
    """Score memories with additive heuristics and keep the best ones."""

    def __init__(
        self,
        config: RankingConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or RankingConfig()
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def score(self, utterance: str, memory: Memory, *, now: datetime | None = None) -> float:
        """Return the relevance score of *memory* for *utterance*, in [0, max_score]."""
        cfg = self._config
        text = utterance.casefold() if isinstance(utterance, str) else ""
        total = 0.0

        key = memory.key.casefold()
        value = memory.value.casefold()
        if text and ((key and key in text) or (value and value in text)):
            total += cfg.direct_match_weight

        markers = cfg.markers_for(memory.category.value)
        if text and any(marker.casefold() in text for marker in markers):
            total += cfg.category_hint_weight

        total += (memory.importance / cfg.max_importance) * cfg.importance_weight

        age_days = self._age_days(memory, now or self._clock())
        if age_days < cfg.recent_window_days:
            total += cfg.recent_bonus
        elif age_days < cfg.stale_window_days:
            total += cfg.stale_bonus

        return min(cfg.max_score, total)

    def rank(
        self,
        utterance: str,
        memories: Sequence[Memory],
        limit: int | None = None,
    ) -> list[RelevanceCandidate]:
        """Return at most *limit* candidates scoring above ``min_score``.

        Ordered by score, then importance, then most recent mention.
        """
        limit = self._config.default_limit if limit is None else limit
        if limit <= 0 or not memories:
            return []
        # Anything that is not a stored memory is skipped
        memories = [m for m in memories if isinstance(m, Memory)]

        now = self._clock()
        scored = [
            RelevanceCandidate(memory=m, score=self.score(utterance, m, now=now))
            for m in memories
        ]
        kept = [c for c in scored if c.score > self._config.min_score]
        kept.sort(
            key=lambda c: (
                c.score,
                c.memory.importance,
                c.memory.last_mentioned_at.timestamp(),
            ),
            reverse=True,
        )
        return kept[:limit]

    @staticmethod
    def _age_days(memory: Memory, now: datetime) -> float:
        last = memory.last_mentioned_at
        if last.tzinfo is None:
            last = last.replace(tzinfo=UTC)
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return (now - last).total_seconds() / _SECONDS_PER_DAY
