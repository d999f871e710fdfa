"""Tests for the OpenAI-compatible gateway."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.messages import ModelRequest, ModelResponse, SystemPromptPart, UserPromptPart

from agent_room.services.openai import OpenAIChatGateway, build_message_history, mentions_quota
from agent_room.services.types import Completion, Fatal, RateLimited


def test_build_message_history_groups_turns() -> None:
    """System and user turns are grouped; assistant turns become responses."""
    history, prompt = build_message_history(
        [
            {"role": "system", "content": "persona"},
            {"role": "system", "content": "summary"},
            {"role": "user", "content": "alice: hi"},
            {"role": "assistant", "content": "hello alice"},
            {"role": "user", "content": "bob: hey"},
            {"role": "user", "content": "New messages..."},
        ],
    )
    assert prompt == "New messages..."
    assert [type(m) for m in history] == [ModelRequest, ModelResponse, ModelRequest]
    first = history[0]
    assert isinstance(first, ModelRequest)
    assert [type(p) for p in first.parts] == [SystemPromptPart, SystemPromptPart, UserPromptPart]
    assert history[1].parts[0].content == "hello alice"


def test_build_message_history_requires_final_user_turn() -> None:
    """A conversation ending on an assistant turn cannot be sent."""
    with pytest.raises(ValueError, match="user turn"):
        build_message_history([{"role": "assistant", "content": "hi"}])
    with pytest.raises(ValueError, match="user turn"):
        build_message_history([])


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("You exceeded your current quota", True),
        ("Rate limit reached for gpt-4o-mini", True),
        ("RESOURCE_EXHAUSTED", True),
        ("Too Many Requests", True),
        ("Invalid API key", False),
    ],
)
def test_mentions_quota(text: str, expected: bool) -> None:  # noqa: FBT001
    """Quota wording is detected case-insensitively."""
    assert mentions_quota(text) is expected


class TestOpenAIChatGateway:
    """Error classification around a mocked agent."""

    MESSAGES = [{"role": "system", "content": "persona"}, {"role": "user", "content": "hi"}]

    @pytest.fixture
    def gateway(self) -> OpenAIChatGateway:
        return OpenAIChatGateway(openai_base_url="http://mock-llm/v1/", api_key="test")

    @pytest.fixture
    def agent(self, gateway: OpenAIChatGateway):  # noqa: ANN201
        mock_agent = MagicMock()
        mock_agent.run = AsyncMock(return_value=MagicMock(output="  hello there \n"))
        with patch.object(gateway, "_agent", return_value=mock_agent):
            yield mock_agent

    def test_base_url_normalized(self, gateway: OpenAIChatGateway) -> None:
        """A trailing slash is dropped."""
        assert gateway.openai_base_url == "http://mock-llm/v1"

    def test_agent_cached_per_model(self, gateway: OpenAIChatGateway) -> None:
        """Agents are built once per model id."""
        first = gateway._agent("gpt-4o-mini")
        assert gateway._agent("gpt-4o-mini") is first
        assert gateway._agent("gpt-4.1-mini") is not first
        assert first.model.model_name == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_success(self, gateway: OpenAIChatGateway, agent: MagicMock) -> None:
        """Output is stripped and the temperature is forwarded."""
        result = await gateway.invoke("gpt-4o-mini", self.MESSAGES, 0.7)
        assert result == Completion(model_id="gpt-4o-mini", text="hello there")
        args, kwargs = agent.run.call_args
        assert args == ("hi",)
        assert kwargs["model_settings"]["temperature"] == 0.7
        assert len(kwargs["message_history"]) == 1

    @pytest.mark.asyncio
    async def test_http_429_is_rate_limited(
        self,
        gateway: OpenAIChatGateway,
        agent: MagicMock,
    ) -> None:
        """HTTP 429 maps to RateLimited."""
        agent.run.side_effect = ModelHTTPError(status_code=429, model_name="m", body=None)
        result = await gateway.invoke("m", self.MESSAGES, 0.7)
        assert isinstance(result, RateLimited)
        assert "429" in result.reason

    @pytest.mark.asyncio
    async def test_quota_body_is_rate_limited(
        self,
        gateway: OpenAIChatGateway,
        agent: MagicMock,
    ) -> None:
        """A quota message with another status still maps to RateLimited."""
        agent.run.side_effect = ModelHTTPError(
            status_code=403,
            model_name="m",
            body={"error": {"message": "You exceeded your current quota"}},
        )
        assert isinstance(await gateway.invoke("m", self.MESSAGES, 0.7), RateLimited)

    @pytest.mark.asyncio
    async def test_other_http_error_is_fatal(
        self,
        gateway: OpenAIChatGateway,
        agent: MagicMock,
    ) -> None:
        """A 400 is fatal and keeps the original error."""
        error = ModelHTTPError(status_code=400, model_name="m", body={"error": "bad request"})
        agent.run.side_effect = error
        result = await gateway.invoke("m", self.MESSAGES, 0.7)
        assert isinstance(result, Fatal)
        assert result.error is error

    @pytest.mark.asyncio
    async def test_network_error_is_fatal(
        self,
        gateway: OpenAIChatGateway,
        agent: MagicMock,
    ) -> None:
        """Connection failures are not retried on another model."""
        agent.run.side_effect = ConnectionError("connection refused")
        result = await gateway.invoke("m", self.MESSAGES, 0.7)
        assert isinstance(result, Fatal)
        assert result.reason == "connection refused"

    @pytest.mark.asyncio
    async def test_quota_exception_is_rate_limited(
        self,
        gateway: OpenAIChatGateway,
        agent: MagicMock,
    ) -> None:
        """Non-HTTP errors that mention a quota are still rate limits."""
        agent.run.side_effect = RuntimeError("RESOURCE_EXHAUSTED: quota exceeded")
        assert isinstance(await gateway.invoke("m", self.MESSAGES, 0.7), RateLimited)

    @pytest.mark.asyncio
    async def test_malformed_messages_are_fatal(
        self,
        gateway: OpenAIChatGateway,
        agent: MagicMock,
    ) -> None:
        """Messages that cannot be sent fail without calling the model."""
        result = await gateway.invoke("m", [{"role": "assistant", "content": "x"}], 0.7)
        assert isinstance(result, Fatal)
        agent.run.assert_not_called()
