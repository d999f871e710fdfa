"""Tests for the room registry and its sweeper."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from agent_room.room.dispatcher import FallbackDispatcher
from agent_room.room.registry import RoomRegistry

if TYPE_CHECKING:
    from conftest import FakeClock, RecordingBroadcaster, ScriptedGateway

    from agent_room.config import RoomSettings


@pytest.fixture
def registry(
    settings: RoomSettings,
    gateway: ScriptedGateway,
    broadcaster: RecordingBroadcaster,
    clock: FakeClock,
) -> RoomRegistry:
    dispatcher = FallbackDispatcher(gateway, settings.candidates)
    return RoomRegistry(settings, dispatcher, lambda _room_id: broadcaster, clock=clock)


class TestRoomRegistry:
    """Room creation, isolation and teardown."""

    def test_get_or_create_reuses_rooms(self, registry: RoomRegistry) -> None:
        """The same id maps to the same conversation; ids are isolated."""
        lobby = registry.get_or_create("lobby")
        assert registry.get_or_create("lobby") is lobby
        other = registry.get_or_create("other")
        assert other is not lobby
        assert other.raw_history is not lobby.raw_history
        assert registry.get("missing") is None
        assert sorted(registry.room_ids) == ["lobby", "other"]

    def test_rooms_share_the_dispatcher(self, registry: RoomRegistry) -> None:
        """Penalties apply process-wide."""
        lobby = registry.get_or_create("lobby")
        other = registry.get_or_create("other")
        assert lobby.scheduler.dispatcher is other.scheduler.dispatcher

    @pytest.mark.asyncio
    async def test_sweep_drops_abandoned_rooms(
        self,
        registry: RoomRegistry,
        clock: FakeClock,
    ) -> None:
        """Empty rooms go away only after the retention period."""
        room = registry.get_or_create("lobby")
        await room.join("p1", "alice")
        await room.leave("p1")

        clock.advance(5)
        await registry.sweep()
        assert registry.get("lobby") is room

        clock.advance(6)
        await registry.sweep()
        assert registry.get("lobby") is None

    @pytest.mark.asyncio
    async def test_sweep_evicts_idle_then_drops(
        self,
        registry: RoomRegistry,
        broadcaster: RecordingBroadcaster,
        clock: FakeClock,
    ) -> None:
        """An idle participant is evicted, and the room later retired."""
        room = registry.get_or_create("lobby")
        await room.join("p1", "alice")

        clock.advance(31)
        await registry.sweep()
        assert broadcaster.of_type("user_left") == [
            {"type": "user_left", "name": "alice", "reason": "idle"},
        ]
        assert registry.get("lobby") is room

        clock.advance(10)
        await registry.sweep()
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_background_sweeper(
        self,
        registry: RoomRegistry,
        clock: FakeClock,
    ) -> None:
        """The started task sweeps on its own and stop closes everything."""
        registry.get_or_create("lobby")
        clock.advance(100)
        await registry.start()
        for _ in range(40):
            if not len(registry):
                break
            await asyncio.sleep(0.01)
        assert len(registry) == 0

        registry.get_or_create("other")
        await registry.stop()
        assert len(registry) == 0
