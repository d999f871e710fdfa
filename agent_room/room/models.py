"""Domain entities for conversation rooms.

Messages are immutable once created; everything else about a room is
mutable state owned by its :class:`~agent_room.room.session.Conversation`.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from agent_room.constants import BOT_PARTICIPANT_ID


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


class Message(BaseModel):
    """A single chat message, human or generated."""

    model_config = ConfigDict(frozen=True)

    participant_id: str
    display_name: str
    text: str
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def is_generated(self) -> bool:
        """Whether this message was produced by the model."""
        return self.participant_id == BOT_PARTICIPANT_ID

    def is_command(self, sentinel: str) -> bool:
        """Whether the text starts with the command sentinel."""
        return self.text.startswith(sentinel)


class DispatchState(str, Enum):
    """Whether a room may start a reply generation right away."""

    IDLE = "idle"
    COOLING = "cooling"


class Participant(BaseModel):
    """A connected participant in a room roster."""

    participant_id: str
    display_name: str
    last_active: float


class RoomStatus(BaseModel):
    """Read-only snapshot served by the status endpoint."""

    summary: str
    raw_message_count: int
    timestamp: datetime = Field(default_factory=utc_now)
