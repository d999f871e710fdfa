"""Rolling summary compaction for room history."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import TYPE_CHECKING

from agent_room import constants
from agent_room.room._prompts import (
    COMPACTION_PROMPT,
    SUMMARIZER_SYSTEM_PROMPT,
    format_transcript,
)
from agent_room.room.errors import DispatchError

if TYPE_CHECKING:
    from agent_room.room.dispatcher import FallbackDispatcher
    from agent_room.room.models import Message
    from agent_room.services.types import ChatMessage

logger = logging.getLogger(__name__)


class HistoryCompactor:
    """Fold the oldest verbatim messages into the conversation summary.

    When the history grows past ``summarize_after`` messages, everything but
    the newest ``max_raw_messages`` is summarized together with the previous
    summary. The history is only trimmed when the new summary comes back; a
    failed call leaves both untouched so the next message retries it.
    """

    def __init__(
        self,
        dispatcher: FallbackDispatcher,
        *,
        max_raw_messages: int = constants.MAX_RAW_MESSAGES,
        summarize_after: int = constants.SUMMARIZE_AFTER,
        max_words: int = constants.SUMMARY_MAX_WORDS,
        temperature: float = constants.SUMMARY_TEMPERATURE,
        command_sentinel: str = constants.COMMAND_SENTINEL,
    ) -> None:
        """Initialize the compactor."""
        if summarize_after < max_raw_messages:
            msg = "summarize_after must be >= max_raw_messages"
            raise ValueError(msg)
        self.dispatcher = dispatcher
        self.max_raw_messages = max_raw_messages
        self.summarize_after = summarize_after
        self.max_words = max_words
        self.temperature = temperature
        self.command_sentinel = command_sentinel

    def needs_compaction(self, raw_history: list[Message]) -> bool:
        """Whether the history crossed the compaction threshold."""
        return len(raw_history) > self.summarize_after

    def build_prompt(self, summary: str, old: list[Message]) -> list[ChatMessage]:
        """Build the summarization request for ``old`` on top of ``summary``."""
        excerpt = format_transcript(
            m for m in old if not m.is_command(self.command_sentinel)
        )
        prompt = COMPACTION_PROMPT.format(
            prior_summary=summary.strip() or "(none yet)",
            excerpt=excerpt or "(no new content)",
            max_words=self.max_words,
        )
        return [
            {"role": "system", "content": SUMMARIZER_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    async def maybe_compact(
        self,
        raw_history: list[Message],
        summary: str,
    ) -> tuple[list[Message], str]:
        """Return the (possibly) compacted history and summary.

        Args:
            raw_history: Current verbatim history, oldest first.
            summary: Current rolling summary.

        Returns:
            Tuple of (new raw history, new summary). Both are the inputs,
            unchanged, when no compaction was needed or the model call failed.

        """
        if not self.needs_compaction(raw_history):
            return raw_history, summary

        cut = len(raw_history) - self.max_raw_messages
        old = raw_history[:cut]
        logger.info(
            "Compacting %d of %d messages into the summary",
            len(old),
            len(raw_history),
        )

        start = perf_counter()
        try:
            new_summary = await self.dispatcher.dispatch(
                self.build_prompt(summary, old),
                self.temperature,
            )
        except DispatchError as e:
            logger.warning("Compaction deferred: %s", e)
            return raw_history, summary
        except Exception:
            logger.exception("Compaction failed unexpectedly; deferring")
            return raw_history, summary

        new_summary = new_summary.strip()
        if not new_summary:
            logger.warning("Compaction deferred: model returned an empty summary")
            return raw_history, summary

        logger.info(
            "Compaction finished in %.1f ms (summary=%d words)",
            (perf_counter() - start) * 1000,
            len(new_summary.split()),
        )
        return raw_history[cut:], new_summary
