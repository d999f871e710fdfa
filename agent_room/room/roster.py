"""Connected participants of a room and their last activity."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from agent_room.room.models import Participant

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class Roster:
    """Track who is in a room and when they were last heard from."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty roster."""
        self._clock = clock
        self._participants: dict[str, Participant] = {}

    def join(self, participant_id: str, display_name: str) -> Participant:
        """Add or rename a participant and mark them active."""
        participant = Participant(
            participant_id=participant_id,
            display_name=display_name,
            last_active=self._clock(),
        )
        self._participants[participant_id] = participant
        return participant

    def leave(self, participant_id: str) -> Participant | None:
        """Remove a participant, returning them if they were present."""
        return self._participants.pop(participant_id, None)

    def get(self, participant_id: str) -> Participant | None:
        return self._participants.get(participant_id)

    def touch(self, participant_id: str) -> bool:
        """Refresh activity; returns False for unknown participants."""
        participant = self._participants.get(participant_id)
        if participant is None:
            return False
        participant.last_active = self._clock()
        return True

    def evict_idle(self, timeout: float) -> list[Participant]:
        """Remove and return participants inactive for longer than ``timeout``."""
        now = self._clock()
        evicted = [p for p in self._participants.values() if now - p.last_active > timeout]
        for participant in evicted:
            del self._participants[participant.participant_id]
            logger.info(
                "Evicting %s after %.0fs of inactivity",
                participant.display_name,
                now - participant.last_active,
            )
        return evicted

    @property
    def names(self) -> list[str]:
        return [p.display_name for p in self._participants.values()]

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)
