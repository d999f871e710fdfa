"""Registry of live conversations and their maintenance loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING

from agent_room.room.session import Conversation

if TYPE_CHECKING:
    from collections.abc import Callable

    from agent_room.config import RoomSettings
    from agent_room.room.dispatcher import FallbackDispatcher
    from agent_room.room.session import Broadcaster

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Create conversations on demand and tear down abandoned ones.

    All rooms share one dispatcher, so a model penalized in one room is
    skipped in every other room too.
    """

    def __init__(
        self,
        settings: RoomSettings,
        dispatcher: FallbackDispatcher,
        broadcaster_factory: Callable[[str], Broadcaster],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty registry."""
        self.settings = settings
        self.dispatcher = dispatcher
        self._broadcaster_factory = broadcaster_factory
        self._clock = clock
        self._rooms: dict[str, Conversation] = {}
        self._sweep_task: asyncio.Task[None] | None = None
        self._shutdown = False

    def get(self, room_id: str) -> Conversation | None:
        return self._rooms.get(room_id)

    def get_or_create(self, room_id: str) -> Conversation:
        """Return the conversation for ``room_id``, creating it on first use."""
        room = self._rooms.get(room_id)
        if room is None:
            room = Conversation(
                room_id,
                self.settings,
                self.dispatcher,
                self._broadcaster_factory(room_id),
                clock=self._clock,
            )
            self._rooms[room_id] = room
            logger.info("Created room %s", room_id)
        return room

    @property
    def room_ids(self) -> list[str]:
        return list(self._rooms)

    def __len__(self) -> int:
        return len(self._rooms)

    async def sweep(self) -> None:
        """Evict idle participants and close rooms abandoned past retention."""
        now = self._clock()
        for room_id, room in list(self._rooms.items()):
            await room.evict_idle()
            if room.is_idle and now - room.last_activity >= self.settings.room_retention:
                del self._rooms[room_id]
                await room.close()
                logger.info("Dropped empty room %s", room_id)

    async def start(self) -> None:
        """Start the periodic sweep."""
        if self._sweep_task is None:
            self._shutdown = False
            self._sweep_task = asyncio.create_task(self._sweeper())
            logger.info(
                "Started room sweeper (interval=%.0fs, idle timeout=%.0fs)",
                self.settings.sweep_interval,
                self.settings.idle_timeout,
            )

    async def stop(self) -> None:
        """Stop the sweeper and close every room."""
        self._shutdown = True
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None
        rooms, self._rooms = list(self._rooms.values()), {}
        for room in rooms:
            await room.close()

    async def _sweeper(self) -> None:
        while not self._shutdown:
            try:
                await asyncio.sleep(self.settings.sweep_interval)
                await self.sweep()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in room sweeper")
