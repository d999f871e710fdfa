"""Abstract base classes for services."""

from abc import ABC, abstractmethod

from agent_room.services.types import ChatMessage, GatewayResult


class ProviderGateway(ABC):
    """Invoke a named chat model and classify the outcome."""

    @abstractmethod
    async def invoke(
        self,
        model_id: str,
        messages: list[ChatMessage],
        temperature: float,
    ) -> GatewayResult:
        """Run one chat completion against ``model_id``.

        Implementations must not raise for provider failures; they return
        :class:`~agent_room.services.types.RateLimited` or
        :class:`~agent_room.services.types.Fatal` instead.
        """
        ...
