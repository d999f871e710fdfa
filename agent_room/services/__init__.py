"""Model provider gateways."""

from agent_room.services.base import ProviderGateway
from agent_room.services.types import ChatMessage, Completion, Fatal, GatewayResult, RateLimited

__all__ = [
    "ChatMessage",
    "Completion",
    "Fatal",
    "GatewayResult",
    "ProviderGateway",
    "RateLimited",
]
