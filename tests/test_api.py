"""Tests for the HTTP and WebSocket API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from fastapi.testclient import TestClient

from agent_room.config import RoomSettings
from agent_room.server.api import create_app

if TYPE_CHECKING:
    from collections.abc import Iterator

    from conftest import ScriptedGateway
    from starlette.testclient import WebSocketTestSession


@pytest.fixture
def client(gateway: ScriptedGateway) -> Iterator[TestClient]:
    """Create a test client with a scripted gateway."""
    settings = RoomSettings(models=["model-a", "model-b"], llm_interval=0.05)
    app = create_app(settings, gateway=gateway)
    with TestClient(app) as test_client:
        yield test_client


def _receive_until(ws: WebSocketTestSession, kind: str, limit: int = 10) -> list[dict[str, Any]]:
    events = []
    for _ in range(limit):
        event = ws.receive_json()
        events.append(event)
        if event["type"] == kind:
            return events
    msg = f"no {kind} event in {events}"
    raise AssertionError(msg)


def test_health(client: TestClient) -> None:
    """Health lists models and rooms."""
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["models"] == ["model-a", "model-b"]
    assert body["rooms"] == 0
    assert body["penalized"] == []


def test_penalty_duration_reaches_dispatcher(gateway: ScriptedGateway) -> None:
    """The configured penalty duration is the one the app's dispatcher uses."""
    settings = RoomSettings(models=["model-a"], penalty_duration=60.0)
    app = create_app(settings, gateway=gateway)
    assert app.state.dispatcher.penalty_box.penalty_duration == settings.penalty_duration


def test_heartbeat(client: TestClient) -> None:
    """Heartbeat answers plain OK."""
    resp = client.get("/heartbeat")
    assert resp.status_code == 200
    assert resp.text == "OK"


def test_status_unknown_room(client: TestClient) -> None:
    """Status for a room nobody joined is a 404."""
    resp = client.get("/status", params={"room": "nowhere"})
    assert resp.status_code == 404


def test_join_message_and_reply(client: TestClient, gateway: ScriptedGateway) -> None:
    """A joined participant sees their message, then the model's reply."""
    with client.websocket_connect("/ws?room=r1") as ws:
        ws.send_json({"type": "join", "name": "alice"})
        history = ws.receive_json()
        assert history == {"type": "history", "messages": [], "state": "idle", "unseen": 0}

        ws.send_json({"type": "message", "text": "hello"})
        events = _receive_until(ws, "reply")

        kinds = [e["type"] for e in events]
        assert kinds[0] == "message"
        assert events[0]["message"]["text"] == "hello"
        assert events[0]["message"]["display_name"] == "alice"
        assert {"type": "unseen", "count": 1} in events
        assert {"type": "dispatch_state", "state": "cooling"} in events
        assert events[-1]["message"]["text"] == gateway.default_text

        status = client.get("/status", params={"room": "r1"}).json()
        assert status["raw_message_count"] == 2
        assert status["summary"] == ""
        assert client.get("/health").json()["rooms"] == 1


def test_message_before_join_is_rejected(client: TestClient) -> None:
    """Chatting without joining returns an error event."""
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "message", "text": "hi"})
        event = ws.receive_json()
        assert event["type"] == "error"
        assert "Join" in event["message"]


def test_invalid_frame(client: TestClient) -> None:
    """Unknown frame types and bad JSON get an error event."""
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "dance"})
        assert ws.receive_json()["type"] == "error"
        ws.send_text("not json")
        assert ws.receive_json()["type"] == "error"
        ws.send_json({"type": "join", "name": ""})
        assert ws.receive_json()["type"] == "error"


def test_join_and_leave_notices(client: TestClient) -> None:
    """Others are told when someone joins and disconnects."""
    with client.websocket_connect("/ws?room=lobby") as alice:
        alice.send_json({"type": "join", "name": "alice"})
        alice.receive_json()

        with client.websocket_connect("/ws?room=lobby") as bob:
            bob.send_json({"type": "join", "name": "bob"})
            assert bob.receive_json()["type"] == "history"
            assert alice.receive_json() == {"type": "user_joined", "name": "bob"}

        assert alice.receive_json() == {
            "type": "user_left",
            "name": "bob",
            "reason": "disconnect",
        }


def test_commands_never_reach_the_model(client: TestClient, gateway: ScriptedGateway) -> None:
    """A command is relayed but does not trigger a model call."""
    with client.websocket_connect("/ws?room=cmd") as ws:
        ws.send_json({"type": "join", "name": "alice"})
        ws.receive_json()
        ws.send_json({"type": "message", "text": "/nick al"})
        event = ws.receive_json()
        assert event["type"] == "message"
        assert event["message"]["text"] == "/nick al"

        status = client.get("/status", params={"room": "cmd"}).json()
        assert status["raw_message_count"] == 1
    assert gateway.calls == []
