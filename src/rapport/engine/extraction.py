"""Lexicon-driven fact extraction from user utterances.

Pure and side-effect free: the caller persists the returned candidates
through a ``MemoryStore``.
"""

from __future__ import annotations

from collections.abc import Sequence

from rapport.engine.lexicon import default_lexicon
from rapport.engine.lexicon import MemoryLexicon
from rapport.models.conversation import Turn
from rapport.models.memory import MemoryCandidate
from rapport.models.memory import MemoryCategory


class MemoryExtractor:
    """Match an utterance against the lexicon and propose memories."""

    def __init__(self, lexicon: MemoryLexicon | None = None) -> None:
        self._lexicon = lexicon or default_lexicon()

    @property
    def lexicon(self) -> MemoryLexicon:
        return self._lexicon

    def extract(
        self,
        utterance: str,
        context: Sequence[Turn] | None = None,
    ) -> list[MemoryCandidate]:
        """Return candidate facts found in *utterance*.

        At most one candidate is emitted per ``(category, key)``; the first
        matching lexicon entry wins. *context* is accepted for categories that
        need prior turns, the stock lexicon ignores it.
        """
        if not isinstance(utterance, str):
            return []
        text = utterance.strip()
        if not text:
            return []

        haystack = text.casefold()
        seen: set[tuple[MemoryCategory, str]] = set()
        candidates: list[MemoryCandidate] = []

        for category, entries in self._lexicon.entries.items():
            for entry in entries:
                ident = (category, entry.key)
                if ident in seen:
                    continue
                if entry.pattern.casefold() not in haystack:
                    continue
                seen.add(ident)
                candidates.append(
                    MemoryCandidate(
                        category=category,
                        key=entry.key,
                        value=self._value_for(category, entry.pattern, text),
                        importance=entry.importance,
                    )
                )
        return candidates

    def _value_for(self, category: MemoryCategory, pattern: str, text: str) -> str:
        if self._lexicon.is_context_category(category):
            return text[: self._lexicon.context_value_length]
        return pattern
