"""Shared test fixtures and configuration."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import io
from typing import TYPE_CHECKING, Any

import pytest
from rich.console import Console

from agent_room.config import RoomSettings
from agent_room.services.base import ProviderGateway
from agent_room.services.types import Completion, GatewayResult

if TYPE_CHECKING:
    from collections.abc import Callable

    from agent_room.services.types import ChatMessage


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Set default timeout for all tests."""
    for item in items:
        with contextlib.suppress(AttributeError):
            item.add_marker(pytest.mark.timeout(3))


class ScriptedGateway(ProviderGateway):
    """Gateway returning queued results per model, then a default completion."""

    def __init__(self, default_text: str = "Hello from the model") -> None:
        self.default_text = default_text
        self.results: dict[str, list[GatewayResult]] = {}
        self.calls: list[tuple[str, list[ChatMessage], float]] = []
        self.handler: Callable[..., Any] | None = None
        self.gate: asyncio.Event | None = None

    def script(self, model_id: str, *results: GatewayResult) -> None:
        self.results.setdefault(model_id, []).extend(results)

    @property
    def called_models(self) -> list[str]:
        return [model_id for model_id, _, _ in self.calls]

    async def invoke(
        self,
        model_id: str,
        messages: list[ChatMessage],
        temperature: float,
    ) -> GatewayResult:
        self.calls.append((model_id, messages, temperature))
        if self.gate is not None:
            await self.gate.wait()
        if self.handler is not None:
            result = self.handler(model_id, messages, temperature)
            if inspect.isawaitable(result):
                result = await result
            return result
        queue = self.results.get(model_id)
        if queue:
            return queue.pop(0)
        return Completion(model_id=model_id, text=self.default_text)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingBroadcaster:
    """Broadcaster that keeps every outbound event."""

    def __init__(self) -> None:
        self.broadcasts: list[tuple[dict[str, Any], str | None]] = []
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def broadcast(self, event: dict[str, Any], *, exclude: str | None = None) -> None:
        self.broadcasts.append((event, exclude))

    async def send(self, participant_id: str, event: dict[str, Any]) -> None:
        self.sent.append((participant_id, event))

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [event for event, _ in self.broadcasts if event["type"] == kind]


@pytest.fixture
def gateway() -> ScriptedGateway:
    """Provide a scripted model gateway."""
    return ScriptedGateway()


@pytest.fixture
def clock() -> FakeClock:
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    """Provide a broadcaster that records events."""
    return RecordingBroadcaster()


@pytest.fixture
def settings() -> RoomSettings:
    """Small windows and a short cooldown for fast tests."""
    return RoomSettings(
        models=["model-a", "model-b", "model-c"],
        max_raw_messages=2,
        summarize_after=3,
        llm_interval=0.01,
        penalty_duration=60.0,
        idle_timeout=30.0,
        sweep_interval=0.05,
        room_retention=10.0,
    )


@pytest.fixture
def mock_console() -> Console:
    """Provide a console that writes to a StringIO for testing."""
    return Console(file=io.StringIO(), width=80, force_terminal=True)
