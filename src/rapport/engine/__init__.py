"""Engine domain — extraction, ranking, pattern analysis, intimacy and directives."""

from rapport.engine.directive import default_directive
from rapport.engine.directive import Directive
from rapport.engine.directive import DirectiveStrategy
from rapport.engine.directive import DirectiveSynthesizer
from rapport.engine.extraction import MemoryExtractor
from rapport.engine.greeting import compose_greeting
from rapport.engine.intimacy import classify_tier
from rapport.engine.intimacy import IntimacyTracker
from rapport.engine.intimacy import ResponseStyle
from rapport.engine.lexicon import default_lexicon
from rapport.engine.lexicon import LexiconEntry
from rapport.engine.lexicon import MemoryLexicon
from rapport.engine.patterns import measure_engagement
from rapport.engine.patterns import PatternAnalyzer
from rapport.engine.patterns import ReplyPair
from rapport.engine.ranking import RelevanceCandidate
from rapport.engine.ranking import RelevanceRanker

__all__ = [
    "Directive",
    "DirectiveStrategy",
    "DirectiveSynthesizer",
    "IntimacyTracker",
    "LexiconEntry",
    "MemoryExtractor",
    "MemoryLexicon",
    "PatternAnalyzer",
    "RelevanceCandidate",
    "RelevanceRanker",
    "ReplyPair",
    "ResponseStyle",
    "classify_tier",
    "compose_greeting",
    "default_directive",
    "default_lexicon",
    "measure_engagement",
]
