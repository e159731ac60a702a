# relaychat/history/models.py
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]
Rating = Literal["up", "down"]

DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 30
TITLE_ELLIPSIS = "..."


def new_id() -> str:
    return uuid.uuid4().hex


def derive_title(first_message: str) -> str:
    """Conversation title from the first message, cut at 30 characters."""
    text = first_message.strip()
    if len(text) > TITLE_MAX_LENGTH:
        return text[:TITLE_MAX_LENGTH] + TITLE_ELLIPSIS
    return text


class Turn(BaseModel):
    """
    One message in a conversation. Immutable once created; updates such as a
    rating produce a copy.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    model: str | None = None
    rating: Rating | None = None

    def to_message(self) -> dict[str, Any]:
        """OpenAI-style ``{role, content}`` pair sent through the relay."""
        return {"role": self.role, "content": self.content}


class Conversation(BaseModel):
    """An ordered, append-only sequence of turns."""
    id: str = Field(default_factory=new_id)
    title: str = DEFAULT_TITLE
    turns: list[Turn] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_messages(self) -> list[dict[str, Any]]:
        return [turn.to_message() for turn in self.turns]

    @property
    def last_turn(self) -> Turn | None:
        return self.turns[-1] if self.turns else None
