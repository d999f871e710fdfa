"""Conversation rooms: dispatch, compaction, scheduling and sessions."""

from agent_room.room.compactor import HistoryCompactor
from agent_room.room.dispatcher import FallbackDispatcher, PenaltyBox
from agent_room.room.errors import AllModelsExhausted, DispatchError, FatalProviderError
from agent_room.room.models import DispatchState, Message, Participant, RoomStatus
from agent_room.room.registry import RoomRegistry
from agent_room.room.scheduler import ResponseScheduler
from agent_room.room.session import Broadcaster, Conversation

__all__ = [
    "AllModelsExhausted",
    "Broadcaster",
    "Conversation",
    "DispatchError",
    "DispatchState",
    "FallbackDispatcher",
    "FatalProviderError",
    "HistoryCompactor",
    "Message",
    "Participant",
    "PenaltyBox",
    "ResponseScheduler",
    "RoomRegistry",
    "RoomStatus",
]
