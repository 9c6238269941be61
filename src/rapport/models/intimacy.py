"""Relationship score model and tiers."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel
from pydantic import Field


class IntimacyTier(StrEnum):
    """Discrete buckets of the intimacy score, lowest first."""

    new = "new"
    acquainted = "acquainted"
    close = "close"
    intimate = "intimate"

    @property
    def rank(self) -> int:
        return list(IntimacyTier).index(self)

    def at_least(self, other: IntimacyTier) -> bool:
        return self.rank >= other.rank


class IntimacyScore(BaseModel):
    """Accumulated relationship strength for one user."""

    user_id: str = Field(description="Owner of the score.")
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    last_interaction_at: datetime | None = Field(
        default=None,
        description="When the score was last updated.",
    )
