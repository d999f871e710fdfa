"""FastAPI application for the chat relay."""

from __future__ import annotations

import contextlib
import logging
import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Annotated, Any, Literal

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from agent_room import constants
from agent_room.room.dispatcher import FallbackDispatcher, PenaltyBox
from agent_room.room.models import RoomStatus
from agent_room.room.registry import RoomRegistry
from agent_room.server.common import log_requests_middleware
from agent_room.server.hub import ConnectionHub

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from agent_room.config import RoomSettings
    from agent_room.room.session import Conversation
    from agent_room.services.base import ProviderGateway

logger = logging.getLogger(__name__)


# --- Pydantic Models ---


class JoinFrame(BaseModel):
    """Client asks to join the room under a display name."""

    type: Literal["join"]
    name: str = Field(min_length=1, max_length=64)


class ChatFrame(BaseModel):
    """Client sends a chat message."""

    type: Literal["message"]
    text: str


InboundFrame = Annotated[JoinFrame | ChatFrame, Field(discriminator="type")]
_FRAME_ADAPTER: TypeAdapter[JoinFrame | ChatFrame] = TypeAdapter(InboundFrame)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    rooms: int
    models: list[str]
    penalized: list[str]


def _error(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}


def create_app(
    settings: RoomSettings,
    gateway: ProviderGateway | None = None,
) -> FastAPI:
    """Create the FastAPI app.

    Args:
        settings: Process-wide room settings.
        gateway: Model gateway; an OpenAI-compatible one is built from
            ``settings`` when omitted.

    Returns:
        Configured FastAPI application.

    """
    if gateway is None:
        from agent_room.services.openai import OpenAIChatGateway  # noqa: PLC0415

        gateway = OpenAIChatGateway(
            openai_base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
        )

    dispatcher = FallbackDispatcher(
        gateway,
        settings.candidates,
        penalty_box=PenaltyBox(settings.penalty_duration),
    )
    hub = ConnectionHub()
    registry = RoomRegistry(settings, dispatcher, hub.broadcaster)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        """Manage application lifecycle."""
        logger.info("Models in fallback order: %s", ", ".join(dispatcher.model_ids))
        await registry.start()
        yield
        await registry.stop()

    app = FastAPI(
        title="Agent Room",
        description="Group chat relay with a model participant",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Any, call_next: Any) -> Any:
        """Log basic request information."""
        return await log_requests_middleware(request, call_next)

    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.hub = hub
    app.state.registry = registry

    # --- Health & Status Endpoints ---

    @app.get("/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            rooms=len(registry),
            models=dispatcher.model_ids,
            penalized=[
                m for m in dispatcher.model_ids if dispatcher.penalty_box.is_penalized(m)
            ],
        )

    @app.get("/heartbeat", response_class=PlainTextResponse)
    async def heartbeat() -> str:
        """Keep-alive endpoint for external pingers."""
        logger.info("Heartbeat ping received")
        return "OK"

    @app.get("/status", response_model=RoomStatus)
    async def room_status(
        room: Annotated[str, Query(description="Room id")] = constants.DEFAULT_ROOM,
    ) -> RoomStatus:
        """Return the summary and history size of a room."""
        conversation = registry.get(room)
        if conversation is None:
            raise HTTPException(status_code=404, detail=f"Unknown room: {room}")
        return conversation.status()

    # --- WebSocket Endpoint ---

    @app.websocket("/ws")
    async def room_socket(
        websocket: WebSocket,
        room: Annotated[str, Query(description="Room id")] = constants.DEFAULT_ROOM,
    ) -> None:
        """Chat WebSocket.

        Protocol:
        - Client sends {"type": "join", "name": "..."} once
        - Client sends {"type": "message", "text": "..."} for each message
        - Server sends history, message, reply, dispatch_state, unseen,
          user_joined, user_left and error events
        """
        await websocket.accept()
        participant_id = uuid.uuid4().hex
        conversation: Conversation | None = None

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    frame = _FRAME_ADAPTER.validate_json(raw)
                except ValidationError as e:
                    await websocket.send_json(_error(f"Invalid frame: {e.errors()[0]['msg']}"))
                    continue

                if isinstance(frame, JoinFrame):
                    conversation = registry.get_or_create(room)
                    hub.connect(room, participant_id, websocket)
                    await conversation.join(participant_id, frame.name.strip() or "anonymous")
                    continue

                if conversation is None or participant_id not in conversation.roster:
                    await websocket.send_json(_error("Join the room before sending messages"))
                    continue
                await conversation.receive(participant_id, frame.text)

        except WebSocketDisconnect:
            logger.debug("Client %s disconnected from %s", participant_id, room)
        except Exception:
            logger.exception("WebSocket error in room %s", room)
            with contextlib.suppress(Exception):
                await websocket.close()
        finally:
            hub.disconnect(room, participant_id)
            if conversation is not None:
                await conversation.leave(participant_id)

    return app
