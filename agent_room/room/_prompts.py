"""Prompt templates for room replies and history compaction.

Wording here is policy. The structure (persona, summary, context turns,
final instruction) is what the scheduler and compactor rely on.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from agent_room.room.models import Message

PERSONA_PROMPT = """
You are {bot_name}, a conversational participant in a shared group chat.
Several people talk with you and with each other at the same time.
Reply once to the latest messages as a whole, not to each line separately.
Do not preface your message with "{bot_name}:" or any other name.
Be concise.
""".strip()

SUMMARY_CONTEXT_PROMPT = """
Summary of the conversation so far (older messages are no longer shown):
{summary}
""".strip()

BATCH_PROMPT = """
New messages since your last reply:
{batch}

Write your next message to the group.
""".strip()

# Merges the previous summary with the excerpt that is about to scroll out.
COMPACTION_PROMPT = """
You maintain the long-term memory of a group chat.
Merge the previous summary with the new excerpt into ONE updated summary.

Focus on:
- Who the participants are and what they care about
- Ongoing topics, decisions, jokes, and commitments
- Anything a newcomer would need to follow the conversation

Rules:
- Replace the previous summary; do not append to it.
- Drop greetings and chit-chat that carries no lasting information.
- Use at most {max_words} words.

Previous summary:
{prior_summary}

New excerpt:
{excerpt}

Updated summary (maximum {max_words} words):
""".strip()

SUMMARIZER_SYSTEM_PROMPT = "You are a concise summarizer. Output only the summary, no preamble."


def format_line(message: Message) -> str:
    """Render a message as ``Name: text``."""
    return f"{message.display_name}: {message.text}"


def format_transcript(messages: Iterable[Message]) -> str:
    """Render messages one per line."""
    return "\n".join(format_line(m) for m in messages)


def self_attribution_pattern(bot_name: str) -> re.Pattern[str]:
    """Match a leading ``BotName:`` label, optionally bold or bracketed."""
    name = re.escape(bot_name)
    return re.compile(rf"^\s*(?:\*\*|\[)?{name}(?:\*\*|\])?\s*:\s*(?:\*\*)?\s*", re.IGNORECASE)


def strip_self_attribution(text: str, bot_name: str) -> str:
    """Remove a leading self-attribution label the model was told not to write."""
    return self_attribution_pattern(bot_name).sub("", text, count=1).strip()
