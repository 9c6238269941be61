"""Models domain — memories, conversations, profiles and intimacy."""

from __future__ import annotations

from rapport.models.conversation import Conversation
from rapport.models.conversation import Role
from rapport.models.conversation import Turn
from rapport.models.intimacy import IntimacyScore
from rapport.models.intimacy import IntimacyTier
from rapport.models.memory import clamp_importance
from rapport.models.memory import Memory
from rapport.models.memory import MemoryCandidate
from rapport.models.memory import MemoryCategory
from rapport.models.memory import memory_sort_key
from rapport.models.profile import ContinuationStyle
from rapport.models.profile import ConversationStyle
from rapport.models.profile import FormalityLevel
from rapport.models.profile import LengthPreference
from rapport.models.profile import PatternMetrics
from rapport.models.profile import PatternProfile
from rapport.models.profile import TopicDepthPreference
from rapport.models.schemas import ConversationInput
from rapport.models.schemas import ConversationResult
from rapport.models.schemas import DirectiveResult
from rapport.models.schemas import GreetingResult
from rapport.models.schemas import IntimacyResult
from rapport.models.schemas import MemoriesResult
from rapport.models.schemas import TurnResult
from rapport.models.schemas import UserTurnInput

__all__ = [
    # Conversations
    "Conversation",
    "Role",
    "Turn",
    # Intimacy
    "IntimacyScore",
    "IntimacyTier",
    # Memories
    "Memory",
    "MemoryCandidate",
    "MemoryCategory",
    "clamp_importance",
    "memory_sort_key",
    # Pattern profile
    "ContinuationStyle",
    "ConversationStyle",
    "FormalityLevel",
    "LengthPreference",
    "PatternMetrics",
    "PatternProfile",
    "TopicDepthPreference",
    # MCP interface
    "ConversationInput",
    "ConversationResult",
    "DirectiveResult",
    "GreetingResult",
    "IntimacyResult",
    "MemoriesResult",
    "TurnResult",
    "UserTurnInput",
]
