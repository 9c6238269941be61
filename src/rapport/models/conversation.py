"""Conversation history models supplied by the history provider."""

from __future__ import annotations

import uuid
from datetime import datetime
from datetime import timezone
from enum import StrEnum

from pydantic import BaseModel
from pydantic import Field


class Role(StrEnum):
    """Speaker of a conversation turn."""

    user = "user"
    assistant = "assistant"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Turn(BaseModel):
    """One message in a conversation."""

    role: Role = Field(description="Who produced the message.")
    content: str = Field(default="", description="Message text.")
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the message was produced.",
    )


class Conversation(BaseModel):
    """An ordered list of turns."""

    id: str = Field(
        default_factory=lambda: f"conv_{uuid.uuid4().hex}",
        description="Conversation identifier.",
    )
    user_id: str | None = Field(default=None, description="Owner of the conversation.")
    turns: list[Turn] = Field(default_factory=list, description="Turns in order.")
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the conversation started.",
    )

    def user_turns(self) -> list[Turn]:
        return [t for t in self.turns if t.role == Role.user]
