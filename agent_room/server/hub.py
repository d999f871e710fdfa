"""WebSocket connections grouped by room."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from agent_room.room.session import Event

logger = logging.getLogger(__name__)


class JSONSocket(Protocol):
    """The part of a WebSocket the hub needs."""

    async def send_json(self, data: Any) -> None: ...


class ConnectionHub:
    """Fan events out to the sockets connected to each room."""

    def __init__(self) -> None:
        """Initialize with no connections."""
        self._rooms: dict[str, dict[str, JSONSocket]] = {}

    def connect(self, room_id: str, participant_id: str, socket: JSONSocket) -> None:
        self._rooms.setdefault(room_id, {})[participant_id] = socket

    def disconnect(self, room_id: str, participant_id: str) -> None:
        sockets = self._rooms.get(room_id)
        if sockets is None:
            return
        sockets.pop(participant_id, None)
        if not sockets:
            del self._rooms[room_id]

    def connection_count(self, room_id: str) -> int:
        return len(self._rooms.get(room_id, {}))

    async def send(self, room_id: str, participant_id: str, event: Event) -> None:
        """Send to one participant; a failing socket is dropped."""
        socket = self._rooms.get(room_id, {}).get(participant_id)
        if socket is None:
            return
        try:
            await socket.send_json(event)
        except Exception:  # noqa: BLE001
            logger.warning("Dropping connection %s in room %s", participant_id, room_id)
            self.disconnect(room_id, participant_id)

    async def broadcast(
        self,
        room_id: str,
        event: Event,
        *,
        exclude: str | None = None,
    ) -> None:
        """Send to every participant in ``room_id`` except ``exclude``."""
        for participant_id in list(self._rooms.get(room_id, {})):
            if participant_id != exclude:
                await self.send(room_id, participant_id, event)

    def broadcaster(self, room_id: str) -> RoomBroadcaster:
        """Return a broadcaster bound to ``room_id``."""
        return RoomBroadcaster(self, room_id)


class RoomBroadcaster:
    """Room-scoped view of a :class:`ConnectionHub`."""

    def __init__(self, hub: ConnectionHub, room_id: str) -> None:
        self.hub = hub
        self.room_id = room_id

    async def broadcast(self, event: Event, *, exclude: str | None = None) -> None:
        await self.hub.broadcast(self.room_id, event, exclude=exclude)

    async def send(self, participant_id: str, event: Event) -> None:
        await self.hub.send(self.room_id, participant_id, event)
