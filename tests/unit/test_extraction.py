"""Unit tests for lexicon-driven memory extraction."""

from __future__ import annotations

from rapport.engine.extraction import MemoryExtractor
from rapport.engine.lexicon import LexiconEntry
from rapport.engine.lexicon import MemoryLexicon
from rapport.models.memory import MemoryCandidate
from rapport.models.memory import MemoryCategory


def _by_ident(candidates: list[MemoryCandidate]) -> dict[tuple[str, str], MemoryCandidate]:
    return {(c.category.value, c.key): c for c in candidates}


# ---------------------------------------------------------------------------
# Default lexicon
# ---------------------------------------------------------------------------


class TestExtractDefaultLexicon:
    def test_gym_visit_yields_sports_hobby(self):
        candidates = MemoryExtractor().extract("오늘 헬스 다녀왔어")
        found = _by_ident(candidates)
        assert found[("hobby", "sports")] == MemoryCandidate(
            category=MemoryCategory.hobby,
            key="sports",
            value="헬스",
            importance=3,
        )

    def test_experience_captures_utterance_as_value(self):
        candidates = MemoryExtractor().extract("오늘 헬스 다녀왔어")
        experience = _by_ident(candidates)[("experience", "recent_experience")]
        assert experience.value == "오늘 헬스 다녀왔어"
        assert experience.importance == 3

    def test_goal_value_is_truncated_to_100_chars(self):
        utterance = "내년에는 꼭 자격증 시험을 준비할 계획이야 " + "정말로 " * 40
        goal = _by_ident(MemoryExtractor().extract(utterance))[("goal", "future_plan")]
        assert len(goal.value) == 100
        assert goal.value == utterance.strip()[:100]

    def test_one_candidate_per_category_key(self):
        # 운동, 헬스 and 요가 all map to hobby/sports
        candidates = MemoryExtractor().extract("운동이랑 헬스랑 요가 다 좋아해")
        sports = [c for c in candidates if c.key == "sports"]
        assert len(sports) == 1
        assert sports[0].value == "운동"

    def test_same_key_in_two_categories_is_kept_twice(self):
        # 동료 is both work/current_work and relationship/colleagues
        found = _by_ident(MemoryExtractor().extract("동료"))
        assert ("work", "current_work") in found
        assert ("relationship", "colleagues") in found

    def test_multiple_categories(self):
        found = _by_ident(MemoryExtractor().extract("엄마랑 여행 가고 싶어"))
        assert found[("relationship", "family")].importance == 4
        assert found[("hobby", "travel")].importance == 4
        assert ("goal", "future_plan") in found

    def test_matching_is_case_insensitive(self):
        found = _by_ident(MemoryExtractor().extract("주말엔 pc방 가"))
        assert found[("hobby", "gaming")].value == "PC방"

    def test_no_match_returns_empty(self):
        assert MemoryExtractor().extract("ㅋㅋㅋ") == []

    def test_empty_and_whitespace(self):
        extractor = MemoryExtractor()
        assert extractor.extract("") == []
        assert extractor.extract("   ") == []

    def test_non_string_input_returns_empty(self):
        assert MemoryExtractor().extract(None) == []  # type: ignore[arg-type]

    def test_deterministic(self):
        extractor = MemoryExtractor()
        utterance = "친구랑 캠핑 가서 요리했어"
        assert extractor.extract(utterance) == extractor.extract(utterance)


# ---------------------------------------------------------------------------
# Custom lexicon
# ---------------------------------------------------------------------------


class TestExtractCustomLexicon:
    def test_uses_injected_lexicon(self):
        lexicon = MemoryLexicon(
            {MemoryCategory.hobby: [LexiconEntry("chess", "board_games", 2)]}
        )
        candidates = MemoryExtractor(lexicon).extract("I play Chess every week")
        assert candidates == [
            MemoryCandidate(MemoryCategory.hobby, "board_games", "chess", 2)
        ]

    def test_context_is_accepted(self):
        from rapport.models.conversation import Role
        from rapport.models.conversation import Turn

        context = [Turn(role=Role.assistant, content="요즘 뭐 해?")]
        candidates = MemoryExtractor().extract("헬스 다녀", context)
        assert ("hobby", "sports") in _by_ident(candidates)
