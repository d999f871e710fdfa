"""Per-room conversation state and the message pipeline.

A :class:`Conversation` owns everything one room needs: the verbatim
history, the rolling summary, the unseen-reply counter, the roster, and the
scheduler that decides when to generate a reply. Inbound messages are
broadcast first and only then handed to the compactor and the scheduler, so
participants always see their own messages even when every model fails.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING, Any, Protocol

from agent_room.room.compactor import HistoryCompactor
from agent_room.room.models import DispatchState, Message, RoomStatus
from agent_room.room.roster import Roster
from agent_room.room.scheduler import ResponseScheduler

if TYPE_CHECKING:
    from collections.abc import Callable

    from agent_room.config import RoomSettings
    from agent_room.room.dispatcher import FallbackDispatcher

logger = logging.getLogger(__name__)

Event = dict[str, Any]


class Broadcaster(Protocol):
    """Outbound side of the transport for one room."""

    async def broadcast(self, event: Event, *, exclude: str | None = None) -> None:
        """Send ``event`` to every participant except ``exclude``."""
        ...

    async def send(self, participant_id: str, event: Event) -> None:
        """Send ``event`` to a single participant."""
        ...


def message_event(message: Message) -> Event:
    """Build the outbound event for a human message or a generated reply."""
    kind = "reply" if message.is_generated else "message"
    return {"type": kind, "message": message.model_dump(mode="json")}


class Conversation:
    """One chat room: history, summary, roster and reply scheduling."""

    def __init__(
        self,
        room_id: str,
        settings: RoomSettings,
        dispatcher: FallbackDispatcher,
        broadcaster: Broadcaster,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty conversation.

        Args:
            room_id: Identifier of the room, used in logs.
            settings: Window sizes, timings and model settings.
            dispatcher: Dispatcher shared by every room in the process.
            broadcaster: Transport used for outbound events.
            clock: Monotonic clock for activity tracking.

        """
        self.room_id = room_id
        self.settings = settings
        self.broadcaster = broadcaster
        self.raw_history: list[Message] = []
        self.summary = ""
        self.unseen = 0
        self.roster = Roster(clock=clock)
        self.compactor = HistoryCompactor(
            dispatcher,
            max_raw_messages=settings.max_raw_messages,
            summarize_after=settings.summarize_after,
            max_words=settings.summary_max_words,
            temperature=settings.summary_temperature,
            command_sentinel=settings.command_sentinel,
        )
        self.scheduler = ResponseScheduler(
            dispatcher,
            context=self._context,
            on_reply=self._on_reply,
            on_state=self._on_state,
            interval=settings.llm_interval,
            temperature=settings.reply_temperature,
            bot_name=settings.bot_name,
            command_sentinel=settings.command_sentinel,
            name=room_id,
        )
        self._clock = clock
        self._compaction_task: asyncio.Task[None] | None = None
        self.last_activity = clock()

    @property
    def state(self) -> DispatchState:
        return self.scheduler.state

    @property
    def is_idle(self) -> bool:
        """No participants and no generation or compaction in progress."""
        return (
            not self.roster
            and not self.scheduler.is_running
            and self._compaction_task is None
        )

    def snapshot(self) -> Event:
        """Return the event sent to a participant who just joined."""
        return {
            "type": "history",
            "messages": [m.model_dump(mode="json") for m in self.raw_history],
            "state": self.state.value,
            "unseen": self.unseen,
        }

    def status(self) -> RoomStatus:
        return RoomStatus(summary=self.summary, raw_message_count=len(self.raw_history))

    async def join(self, participant_id: str, display_name: str) -> None:
        """Register a participant, send them the history and announce them."""
        self.roster.join(participant_id, display_name)
        self.last_activity = self._clock()
        logger.info("[%s] %s joined", self.room_id, display_name)
        await self.broadcaster.send(participant_id, self.snapshot())
        await self.broadcaster.broadcast(
            {"type": "user_joined", "name": display_name},
            exclude=participant_id,
        )

    async def leave(self, participant_id: str, reason: str = "disconnect") -> None:
        """Remove a participant and tell the others."""
        participant = self.roster.leave(participant_id)
        if participant is None:
            return
        self.last_activity = self._clock()
        logger.info("[%s] %s left (%s)", self.room_id, participant.display_name, reason)
        await self.broadcaster.broadcast(
            {"type": "user_left", "name": participant.display_name, "reason": reason},
        )

    async def evict_idle(self) -> int:
        """Drop participants idle past ``idle_timeout``; returns how many left."""
        evicted = self.roster.evict_idle(self.settings.idle_timeout)
        if evicted:
            self.last_activity = self._clock()
        for participant in evicted:
            await self.broadcaster.broadcast(
                {"type": "user_left", "name": participant.display_name, "reason": "idle"},
            )
        return len(evicted)

    async def receive(self, participant_id: str, text: str) -> Message | None:
        """Handle an inbound chat message.

        Args:
            participant_id: Sender; must have joined and not been evicted.
            text: Message text as typed.

        Returns:
            The stored message, or None when it was ignored.

        """
        participant = self.roster.get(participant_id)
        if participant is None:
            logger.debug(
                "[%s] Ignoring message from unknown participant %s",
                self.room_id,
                participant_id,
            )
            return None
        if not text.strip():
            return None

        self.roster.touch(participant_id)
        self.last_activity = self._clock()
        message = Message(
            participant_id=participant_id,
            display_name=participant.display_name,
            text=text,
        )
        self.raw_history.append(message)
        await self.broadcaster.broadcast(message_event(message))

        if message.is_command(self.settings.command_sentinel):
            logger.debug("[%s] Relayed command from %s", self.room_id, participant.display_name)
            return message

        self.unseen += 1
        await self.broadcaster.broadcast({"type": "unseen", "count": self.unseen})
        self._start_compaction()
        self.scheduler.enqueue(message)
        return message

    def _context(self) -> tuple[list[Message], str]:
        return list(self.raw_history), self.summary

    async def _on_reply(self, reply: Message) -> None:
        self.raw_history.append(reply)
        self.last_activity = self._clock()
        await self.broadcaster.broadcast(message_event(reply))

    async def _on_state(self, state: DispatchState) -> None:
        if state is DispatchState.COOLING:
            self.unseen = 0
            await self.broadcaster.broadcast({"type": "unseen", "count": 0})
        await self.broadcaster.broadcast({"type": "dispatch_state", "state": state.value})

    def _start_compaction(self) -> None:
        """Start a compaction in the background unless one is running."""
        if self._compaction_task is not None:
            return
        if not self.compactor.needs_compaction(self.raw_history):
            return
        self._compaction_task = asyncio.create_task(
            self._compact(),
            name=f"agent-room-compaction-{self.room_id}",
        )

    async def _compact(self) -> None:
        try:
            snapshot = list(self.raw_history)
            kept, summary = await self.compactor.maybe_compact(snapshot, self.summary)
            removed = len(snapshot) - len(kept)
            if removed <= 0:
                return
            # History only grows at the end while the call is in flight,
            # so the summarized prefix is still at the front.
            self.raw_history = self.raw_history[removed:]
            self.summary = summary
            logger.info(
                "[%s] Summary updated; %d message(s) remain verbatim",
                self.room_id,
                len(self.raw_history),
            )
        finally:
            self._compaction_task = None

    async def wait_for_compaction(self) -> None:
        """Wait for a running compaction, if any."""
        task = self._compaction_task
        if task is not None:
            await asyncio.shield(task)

    async def close(self) -> None:
        """Cancel background work owned by this conversation."""
        await self.scheduler.close()
        task, self._compaction_task = self._compaction_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("[%s] Conversation closed", self.room_id)
