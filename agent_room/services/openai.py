"""OpenAI-compatible chat gateway built on PydanticAI."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from agent_room.services.base import ProviderGateway
from agent_room.services.types import ChatMessage, Completion, Fatal, GatewayResult, RateLimited

if TYPE_CHECKING:
    from pydantic_ai import Agent
    from pydantic_ai.messages import ModelMessage

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429
# Providers signal quota exhaustion in the message body, sometimes with a non-429 status.
_QUOTA_RE = re.compile(
    r"quota|rate[ _-]?limit|resource[ _-]?exhausted|too many requests",
    re.IGNORECASE,
)


def mentions_quota(text: str) -> bool:
    """Return True when an error message reads like a rate or quota limit."""
    return bool(_QUOTA_RE.search(text))


def build_message_history(
    messages: list[ChatMessage],
) -> tuple[list[ModelMessage], str]:
    """Split role-tagged messages into PydanticAI history and the final prompt.

    Consecutive system/user entries are grouped into one ``ModelRequest``;
    assistant entries become ``ModelResponse`` objects.

    Args:
        messages: Role-tagged messages; the last one must be a user turn.

    Returns:
        Tuple of (message history, final user prompt).

    """
    from pydantic_ai.messages import (  # noqa: PLC0415
        ModelRequest,
        ModelResponse,
        SystemPromptPart,
        TextPart,
        UserPromptPart,
    )

    if not messages or messages[-1]["role"] != "user":
        msg = "messages must end with a user turn"
        raise ValueError(msg)

    history: list[ModelMessage] = []
    parts: list[SystemPromptPart | UserPromptPart] = []
    for message in messages[:-1]:
        role = message["role"]
        if role == "assistant":
            if parts:
                history.append(ModelRequest(parts=parts))
                parts = []
            history.append(ModelResponse(parts=[TextPart(content=message["content"])]))
        elif role == "system":
            parts.append(SystemPromptPart(content=message["content"]))
        else:
            parts.append(UserPromptPart(content=message["content"]))
    if parts:
        history.append(ModelRequest(parts=parts))
    return history, messages[-1]["content"]


class OpenAIChatGateway(ProviderGateway):
    """Call models on an OpenAI-compatible endpoint (OpenAI, OpenRouter, Gemini, Ollama)."""

    def __init__(
        self,
        *,
        openai_base_url: str,
        api_key: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialize the gateway for one endpoint."""
        self.openai_base_url = openai_base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._agents: dict[str, Agent] = {}

    def _agent(self, model_id: str) -> Agent:
        """Return a cached PydanticAI agent for ``model_id``."""
        agent = self._agents.get(model_id)
        if agent is not None:
            return agent

        from openai import AsyncOpenAI  # noqa: PLC0415
        from pydantic_ai import Agent  # noqa: PLC0415
        from pydantic_ai.models.openai import OpenAIChatModel  # noqa: PLC0415
        from pydantic_ai.providers.openai import OpenAIProvider  # noqa: PLC0415

        # Fallback is the dispatcher's job, so the client must not retry 429s itself.
        client = AsyncOpenAI(
            api_key=self.api_key or "not-needed",
            base_url=self.openai_base_url,
            max_retries=0,
            timeout=self.timeout,
        )
        provider = OpenAIProvider(openai_client=client)
        model = OpenAIChatModel(model_name=model_id, provider=provider)
        agent = Agent(model=model)
        self._agents[model_id] = agent
        return agent

    async def invoke(
        self,
        model_id: str,
        messages: list[ChatMessage],
        temperature: float,
    ) -> GatewayResult:
        """Run one chat completion and classify any failure."""
        from pydantic_ai.exceptions import ModelHTTPError  # noqa: PLC0415
        from pydantic_ai.settings import ModelSettings  # noqa: PLC0415

        try:
            history, prompt = build_message_history(messages)
        except ValueError as e:
            return Fatal(model_id=model_id, reason=str(e), error=e)

        try:
            result = await self._agent(model_id).run(
                prompt,
                message_history=history,
                model_settings=ModelSettings(temperature=temperature),
            )
        except ModelHTTPError as e:
            reason = f"HTTP {e.status_code}: {e.body}"
            if e.status_code == RATE_LIMIT_STATUS or mentions_quota(str(e.body)):
                return RateLimited(model_id=model_id, reason=reason)
            return Fatal(model_id=model_id, reason=reason, error=e)
        except Exception as e:  # noqa: BLE001
            if mentions_quota(str(e)):
                return RateLimited(model_id=model_id, reason=str(e))
            logger.debug("Model %s failed", model_id, exc_info=True)
            return Fatal(model_id=model_id, reason=str(e) or type(e).__name__, error=e)

        return Completion(model_id=model_id, text=(result.output or "").strip())
