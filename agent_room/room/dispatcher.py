"""Priority-ordered model fallback with a per-model penalty box.

Every call walks the candidate list from the top. A model that answers with
a rate or quota error is suspended for ``penalty_duration`` seconds and the
next candidate is tried straight away. A fatal error stops the walk, since a
malformed request fails the same way on every model.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from agent_room import constants
from agent_room.room.errors import AllModelsExhausted, FatalProviderError
from agent_room.services.types import Completion, Fatal, RateLimited

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from agent_room.config import ModelCandidate
    from agent_room.services.base import ProviderGateway
    from agent_room.services.types import ChatMessage

logger = logging.getLogger(__name__)


class PenaltyBox:
    """Temporary suspension of models that hit a rate or quota limit.

    Entries expire lazily: a lookup at or past the unlock time removes the
    entry and reports the model as eligible. There is no background sweep.
    """

    def __init__(
        self,
        penalty_duration: float = constants.PENALTY_DURATION,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize an empty penalty box."""
        self.penalty_duration = penalty_duration
        self._clock = clock
        self._unlock_at: dict[str, float] = {}

    def penalize(self, model_id: str) -> float:
        """Suspend ``model_id`` and return its unlock time."""
        unlock_at = self._clock() + self.penalty_duration
        self._unlock_at[model_id] = unlock_at
        logger.warning(
            "Model %s penalized for %.0fs",
            model_id,
            self.penalty_duration,
        )
        return unlock_at

    def is_penalized(self, model_id: str) -> bool:
        """Return True while ``model_id`` is suspended, dropping expired entries."""
        unlock_at = self._unlock_at.get(model_id)
        if unlock_at is None:
            return False
        if unlock_at > self._clock():
            return True
        del self._unlock_at[model_id]
        logger.info("Model %s released from penalty box", model_id)
        return False

    def unlock_time(self, model_id: str) -> float | None:
        """Return the stored unlock time without expiring anything."""
        return self._unlock_at.get(model_id)

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._unlock_at

    def __len__(self) -> int:
        return len(self._unlock_at)


class FallbackDispatcher:
    """Dispatch a chat completion to the first eligible model candidate."""

    def __init__(
        self,
        gateway: ProviderGateway,
        candidates: Sequence[ModelCandidate],
        *,
        penalty_box: PenaltyBox | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            gateway: Provider gateway used for every model call.
            candidates: Models to try; sorted by priority, lowest first.
            penalty_box: Shared penalty state. A fresh one is created if omitted.

        """
        if not candidates:
            msg = "at least one model candidate is required"
            raise ValueError(msg)
        self.gateway = gateway
        self.candidates = sorted(candidates, key=lambda c: c.priority)
        self.penalty_box = penalty_box if penalty_box is not None else PenaltyBox()

    @property
    def model_ids(self) -> list[str]:
        """Model ids in dispatch order."""
        return [c.model_id for c in self.candidates]

    async def dispatch(self, messages: list[ChatMessage], temperature: float) -> str:
        """Return generated text from the highest-priority model that answers.

        Raises:
            FatalProviderError: The first eligible model failed non-recoverably.
            AllModelsExhausted: Every model is penalized or rate-limited.

        """
        attempted: list[str] = []
        skipped: list[str] = []
        for candidate in self.candidates:
            model_id = candidate.model_id
            if self.penalty_box.is_penalized(model_id):
                skipped.append(model_id)
                continue

            attempted.append(model_id)
            logger.debug("Dispatching to %s (temperature=%.2f)", model_id, temperature)
            result = await self.gateway.invoke(model_id, messages, temperature)

            if isinstance(result, Completion):
                if len(attempted) > 1 or skipped:
                    logger.info("Fell back to %s", model_id)
                return result.text
            if isinstance(result, RateLimited):
                logger.warning("Model %s rate limited: %s", model_id, result.reason)
                self.penalty_box.penalize(model_id)
                continue
            if isinstance(result, Fatal):
                logger.error("Model %s failed: %s", model_id, result.reason)
                raise FatalProviderError(model_id, result.reason) from result.error

            msg = f"Unexpected gateway result: {result!r}"
            raise TypeError(msg)

        logger.error(
            "No model available (attempted=%s, penalized=%s)",
            attempted,
            skipped,
        )
        raise AllModelsExhausted(attempted, skipped)
