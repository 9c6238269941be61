"""Relationship score tracker.

The score only ever grows (bounded at ``IntimacyConfig.max_score``); the tier
derived from it gates which directive strategy may run.
"""

from __future__ import annotations

from dataclasses import dataclass

from rapport.config import IntimacyConfig
from rapport.memory.store import IntimacyStore
from rapport.models.intimacy import IntimacyScore
from rapport.models.intimacy import IntimacyTier


def classify_tier(score: float, config: IntimacyConfig | None = None) -> IntimacyTier:
    """Map a raw score to its tier."""
    cfg = config or IntimacyConfig()
    if score >= cfg.intimate_threshold:
        return IntimacyTier.intimate
    if score >= cfg.close_threshold:
        return IntimacyTier.close
    if score >= cfg.acquainted_threshold:
        return IntimacyTier.acquainted
    return IntimacyTier.new


@dataclass(frozen=True)
class ResponseStyle:
    """Behavioural hints unlocked as the relationship deepens."""

    intimacy: float
    remember_details: bool
    show_concern: bool
    use_nickname: bool
    make_jokes: bool
    share_personal_thoughts: bool

    @classmethod
    def for_score(cls, score: float) -> ResponseStyle:
        level = min(100.0, max(0.0, score))
        return cls(
            intimacy=level,
            remember_details=level > 15,
            show_concern=level > 20,
            use_nickname=level > 30,
            make_jokes=level > 40,
            share_personal_thoughts=level > 50,
        )

    def flags(self) -> dict[str, bool]:
        return {
            "remember_details": self.remember_details,
            "show_concern": self.show_concern,
            "use_nickname": self.use_nickname,
            "make_jokes": self.make_jokes,
            "share_personal_thoughts": self.share_personal_thoughts,
        }


class IntimacyTracker:
    """Read and grow a user's intimacy score through an ``IntimacyStore``."""

    def __init__(
        self,
        store: IntimacyStore,
        config: IntimacyConfig | None = None,
    ) -> None:
        self._store = store
        self._config = config or IntimacyConfig()

    @property
    def config(self) -> IntimacyConfig:
        return self._config

    async def get(self, user_id: str) -> float:
        record = await self._store.get(user_id)
        return record.score

    async def update(self, user_id: str, delta: float) -> float:
        """Add a non-negative *delta*; the stored score is clamped at the maximum."""
        if delta < 0:
            raise ValueError("delta must be >= 0")
        record: IntimacyScore = await self._store.update(
            user_id, delta, max_score=self._config.max_score
        )
        return record.score

    async def tier(self, user_id: str) -> IntimacyTier:
        return classify_tier(await self.get(user_id), self._config)

    def classify(self, score: float) -> IntimacyTier:
        return classify_tier(score, self._config)
