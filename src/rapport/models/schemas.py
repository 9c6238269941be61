"""Pydantic models for the MCP interface.

Input models validate tool arguments; output models shape responses.
FastMCP serializes Pydantic models automatically.
"""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import Field

from rapport.models.conversation import Turn
from rapport.models.intimacy import IntimacyTier
from rapport.models.memory import Memory
from rapport.models.profile import PatternProfile

# ---------------------------------------------------------------------------
# Input models
# ---------------------------------------------------------------------------


class UserTurnInput(BaseModel):
    """Input for record_user_turn."""

    user_id: str = Field(min_length=1, description="Stable user identifier.")
    utterance: str = Field(min_length=1, description="Latest user message.")
    context: list[Turn] | None = Field(
        default=None,
        description="Recent turns of the current conversation, oldest first.",
    )


class ConversationInput(BaseModel):
    """Input for record_conversation."""

    user_id: str = Field(min_length=1, description="Owner of the conversation.")
    turns: list[Turn] = Field(min_length=1, description="Turns in order.")
    conversation_id: str | None = Field(
        default=None,
        description="Existing conversation to replace; a new id is minted if omitted.",
    )


# ---------------------------------------------------------------------------
# Output models
# ---------------------------------------------------------------------------


class DirectiveResult(BaseModel):
    """Output of build_directive."""

    directive: str = Field(description="Plain-text steering directive.")
    strategy: str = Field(description="intimate, pattern or default.")
    tier: IntimacyTier = Field(description="Relationship tier at build time.")
    memory_ids: list[str] = Field(
        default_factory=list,
        description="Memories rendered into the directive.",
    )


class TurnResult(BaseModel):
    """Output of record_user_turn."""

    status: str = Field(default="ok", description="ok, rejected or error.")
    error_code: str | None = None
    message: str | None = None
    memories: list[Memory] = Field(
        default_factory=list,
        description="Memories created or refreshed by this turn.",
    )
    intimacy_score: float | None = Field(
        default=None,
        description="Score after the turn; omitted when nothing was extracted.",
    )
    profile_refreshed: bool = False


class ConversationResult(BaseModel):
    """Output of record_conversation."""

    status: str = Field(default="ok", description="ok, rejected or error.")
    error_code: str | None = None
    message: str | None = None
    conversation_id: str = ""
    profile: PatternProfile | None = Field(
        default=None,
        description="Refreshed pattern profile, when enough history exists.",
    )


class MemoriesResult(BaseModel):
    """Output of get_memories."""

    status: str = "ok"
    error_code: str | None = None
    message: str | None = None
    memories: list[Memory] = Field(default_factory=list)
    total: int = Field(default=0, description="Memories stored for the user.")


class IntimacyResult(BaseModel):
    """Output of get_intimacy."""

    status: str = "ok"
    error_code: str | None = None
    message: str | None = None
    score: float = 0.0
    tier: IntimacyTier = IntimacyTier.new
    style: dict[str, bool] = Field(
        default_factory=dict,
        description="Response-style flags unlocked at this score.",
    )


class GreetingResult(BaseModel):
    """Output of proactive_greeting."""

    greeting: str
