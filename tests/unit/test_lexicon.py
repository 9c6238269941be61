"""Unit tests for the immutable memory lexicon."""

from __future__ import annotations

import pytest

from rapport.engine.lexicon import default_lexicon
from rapport.engine.lexicon import LexiconEntry
from rapport.engine.lexicon import MemoryLexicon
from rapport.models.memory import MemoryCategory


class TestDefaultLexicon:
    def test_covers_every_category(self):
        assert set(default_lexicon().categories()) == set(MemoryCategory)

    def test_goal_and_experience_capture_context(self):
        lexicon = default_lexicon()
        assert lexicon.is_context_category(MemoryCategory.goal)
        assert lexicon.is_context_category(MemoryCategory.experience)
        assert not lexicon.is_context_category(MemoryCategory.hobby)
        assert lexicon.context_value_length == 100

    @pytest.mark.parametrize(
        "category, key, importance",
        [
            (MemoryCategory.hobby, "sports", 3),
            (MemoryCategory.hobby, "travel", 4),
            (MemoryCategory.hobby, "reading", 2),
            (MemoryCategory.work, "current_work", 3),
            (MemoryCategory.relationship, "family", 4),
            (MemoryCategory.goal, "future_plan", 4),
            (MemoryCategory.preference, "food", 2),
            (MemoryCategory.experience, "recent_experience", 3),
        ],
    )
    def test_base_importance(self, category, key, importance):
        entries = [e for e in default_lexicon().entries[category] if e.key == key]
        assert entries
        assert {e.importance for e in entries} == {importance}


class TestMemoryLexicon:
    def test_entries_mapping_is_read_only(self):
        lexicon = default_lexicon()
        with pytest.raises(TypeError):
            lexicon.entries[MemoryCategory.hobby] = ()  # type: ignore[index]

    def test_entries_are_tuples(self):
        lexicon = default_lexicon()
        assert all(isinstance(v, tuple) for v in lexicon.entries.values())

    def test_source_mutation_does_not_leak(self):
        source = {MemoryCategory.hobby: [LexiconEntry("chess", "board_games", 2)]}
        lexicon = MemoryLexicon(source)
        source[MemoryCategory.hobby].append(LexiconEntry("go", "board_games", 2))
        assert len(lexicon) == 1

    def test_importance_is_clamped(self):
        lexicon = MemoryLexicon(
            {MemoryCategory.hobby: [LexiconEntry("chess", "board_games", 9)]}
        )
        assert lexicon.entries[MemoryCategory.hobby][0].importance == 5

    def test_empty_patterns_are_dropped(self):
        lexicon = MemoryLexicon(
            {MemoryCategory.hobby: [LexiconEntry("", "nothing", 2)]}
        )
        assert len(lexicon) == 0
