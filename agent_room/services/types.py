"""Type definitions for services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypedDict


class ChatMessage(TypedDict):
    """A single role-tagged entry sent to a chat model."""

    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(frozen=True)
class Completion:
    """The model produced text."""

    model_id: str
    text: str


@dataclass(frozen=True)
class RateLimited:
    """The model is saturated; a different model might succeed."""

    model_id: str
    reason: str


@dataclass(frozen=True)
class Fatal:
    """The call failed in a way that retrying elsewhere will not fix."""

    model_id: str
    reason: str
    error: BaseException | None = None


GatewayResult = Completion | RateLimited | Fatal
