"""Unit tests for the relationship score tracker."""

from __future__ import annotations

import pytest

from rapport.config import IntimacyConfig
from rapport.engine.intimacy import classify_tier
from rapport.engine.intimacy import IntimacyTracker
from rapport.engine.intimacy import ResponseStyle
from rapport.models.intimacy import IntimacyTier


@pytest.fixture()
def tracker(intimacy_store) -> IntimacyTracker:
    return IntimacyTracker(intimacy_store)


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------


class TestClassifyTier:
    @pytest.mark.parametrize(
        "score, tier",
        [
            (0, IntimacyTier.new),
            (19.9, IntimacyTier.new),
            (20, IntimacyTier.acquainted),
            (39, IntimacyTier.acquainted),
            (40, IntimacyTier.close),
            (69.5, IntimacyTier.close),
            (70, IntimacyTier.intimate),
            (100, IntimacyTier.intimate),
        ],
    )
    def test_boundaries(self, score, tier):
        assert classify_tier(score) == tier

    def test_custom_thresholds(self):
        cfg = IntimacyConfig(acquainted_threshold=5, close_threshold=10, intimate_threshold=15)
        assert classify_tier(6, cfg) == IntimacyTier.acquainted
        assert classify_tier(15, cfg) == IntimacyTier.intimate

    def test_tier_ordering(self):
        assert IntimacyTier.close.at_least(IntimacyTier.acquainted)
        assert IntimacyTier.acquainted.at_least(IntimacyTier.acquainted)
        assert not IntimacyTier.new.at_least(IntimacyTier.acquainted)


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------


class TestIntimacyTracker:
    async def test_unknown_user_starts_at_zero(self, tracker):
        assert await tracker.get("u1") == 0.0
        assert await tracker.tier("u1") == IntimacyTier.new

    async def test_update_accumulates(self, tracker):
        await tracker.update("u1", 1.0)
        assert await tracker.update("u1", 2.5) == 3.5

    async def test_update_is_clamped_at_100(self, tracker):
        await tracker.update("u1", 99.0)
        assert await tracker.update("u1", 5.0) == 100.0
        assert await tracker.get("u1") == 100.0

    async def test_never_decreases(self, tracker):
        previous = 0.0
        for delta in (0.0, 3.0, 0.0, 50.0, 80.0, 1.0):
            current = await tracker.update("u1", delta)
            assert current >= previous
            previous = current

    async def test_negative_delta_is_rejected(self, tracker):
        await tracker.update("u1", 10.0)
        with pytest.raises(ValueError):
            await tracker.update("u1", -1.0)
        assert await tracker.get("u1") == 10.0

    async def test_update_refreshes_last_interaction(self, intimacy_store, tracker, clock):
        await tracker.update("u1", 1.0)
        record = await intimacy_store.get("u1")
        assert record.last_interaction_at == clock.now

    async def test_users_are_isolated(self, tracker):
        await tracker.update("u1", 30.0)
        assert await tracker.get("u2") == 0.0

    async def test_tier_follows_score(self, tracker):
        await tracker.update("u1", 45.0)
        assert await tracker.tier("u1") == IntimacyTier.close


# ---------------------------------------------------------------------------
# Response style
# ---------------------------------------------------------------------------


class TestResponseStyle:
    def test_nothing_unlocked_at_zero(self):
        assert not any(ResponseStyle.for_score(0).flags().values())

    def test_thresholds_are_strict(self):
        style = ResponseStyle.for_score(20)
        assert style.remember_details is True
        assert style.show_concern is False

    def test_everything_unlocked_above_fifty(self):
        assert all(ResponseStyle.for_score(51).flags().values())

    def test_intermediate(self):
        flags = ResponseStyle.for_score(35).flags()
        assert flags == {
            "remember_details": True,
            "show_concern": True,
            "use_nickname": True,
            "make_jokes": False,
            "share_personal_thoughts": False,
        }

    def test_score_is_clamped(self):
        assert ResponseStyle.for_score(250).intimacy == 100.0
        assert ResponseStyle.for_score(-3).intimacy == 0.0
