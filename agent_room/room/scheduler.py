"""Cooldown-gated reply generation.

Human messages are collected into a pending batch. When the room is idle the
first message starts a cycle: the batch is snapshotted, one reply is
generated for all of it, and the room then cools down for ``interval``
seconds. Messages that arrive meanwhile form the next batch, which the cycle
picks up as soon as the cooldown ends. With no new messages the cycle ends
and the room goes back to idle.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from agent_room import constants
from agent_room.room._prompts import (
    BATCH_PROMPT,
    PERSONA_PROMPT,
    SUMMARY_CONTEXT_PROMPT,
    format_line,
    format_transcript,
    strip_self_attribution,
)
from agent_room.room.errors import DispatchError
from agent_room.room.models import DispatchState, Message

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from agent_room.room.dispatcher import FallbackDispatcher
    from agent_room.services.types import ChatMessage

    ContextProvider = Callable[[], tuple[list[Message], str]]
    ReplyHandler = Callable[[Message], Awaitable[None]]
    StateHandler = Callable[[DispatchState], Awaitable[None]]

logger = logging.getLogger(__name__)


class ResponseScheduler:
    """Batch human messages and generate at most one reply per cooldown window."""

    def __init__(
        self,
        dispatcher: FallbackDispatcher,
        *,
        context: ContextProvider,
        on_reply: ReplyHandler,
        on_state: StateHandler | None = None,
        interval: float = constants.LLM_INTERVAL,
        temperature: float = constants.REPLY_TEMPERATURE,
        bot_name: str = constants.BOT_NAME,
        command_sentinel: str = constants.COMMAND_SENTINEL,
        name: str = "room",
    ) -> None:
        """Initialize the scheduler.

        Args:
            dispatcher: Fallback dispatcher used to generate replies.
            context: Returns the current (raw history, summary) at dispatch time.
            on_reply: Called with each generated reply, in generation order.
            on_state: Called when the room starts generating or goes idle.
            interval: Minimum seconds between two dispatch attempts.
            temperature: Sampling temperature for replies.
            bot_name: Display name of the generated participant.
            command_sentinel: Leading character that marks command messages.
            name: Label used in logs and task names.

        """
        self.dispatcher = dispatcher
        self.interval = interval
        self.temperature = temperature
        self.bot_name = bot_name
        self.command_sentinel = command_sentinel
        self.name = name
        self.state = DispatchState.IDLE
        self._context = context
        self._on_reply = on_reply
        self._on_state = on_state
        self._pending: list[Message] = []
        self._task: asyncio.Task[None] | None = None
        self.attempts = 0

    @property
    def pending(self) -> list[Message]:
        """Messages waiting for the next dispatch attempt."""
        return list(self._pending)

    @property
    def is_running(self) -> bool:
        """Whether a generate/cooldown cycle is active."""
        return self._task is not None

    def enqueue(self, message: Message) -> None:
        """Queue ``message`` and start a cycle if the room is idle."""
        self._pending.append(message)
        if self.state is DispatchState.IDLE and self._task is None:
            self.state = DispatchState.COOLING
            self._task = asyncio.create_task(
                self._run_cycles(),
                name=f"agent-room-scheduler-{self.name}",
            )

    def drain(self) -> list[Message]:
        """Snapshot and clear the pending batch."""
        batch, self._pending = self._pending, []
        return batch

    def build_prompt(
        self,
        raw_history: list[Message],
        summary: str,
        batch: list[Message],
    ) -> list[ChatMessage]:
        """Assemble persona, summary, history turns and the batch instruction."""
        messages: list[ChatMessage] = [
            {"role": "system", "content": PERSONA_PROMPT.format(bot_name=self.bot_name)},
        ]
        if summary.strip():
            messages.append(
                {"role": "system", "content": SUMMARY_CONTEXT_PROMPT.format(summary=summary)},
            )
        for message in raw_history:
            if message.is_command(self.command_sentinel):
                continue
            if message.is_generated:
                messages.append({"role": "assistant", "content": message.text})
            else:
                messages.append({"role": "user", "content": format_line(message)})
        messages.append(
            {"role": "user", "content": BATCH_PROMPT.format(batch=format_transcript(batch))},
        )
        return messages

    async def _run_cycles(self) -> None:
        """Generate, cool down, and repeat while messages keep arriving."""
        try:
            while self._pending:
                self.state = DispatchState.COOLING
                batch = self.drain()
                self.attempts += 1
                await self._notify(DispatchState.COOLING)
                await self._attempt(batch)
                await asyncio.sleep(self.interval)
                self.state = DispatchState.IDLE
                await self._notify(DispatchState.IDLE)
        finally:
            self._task = None

    async def _attempt(self, batch: list[Message]) -> None:
        """Run one dispatch for ``batch``; failures are logged and swallowed."""
        raw_history, summary = self._context()
        prompt = self.build_prompt(raw_history, summary, batch)
        logger.info(
            "[%s] Generating reply for %d new message(s) with %d history turn(s)",
            self.name,
            len(batch),
            len(raw_history),
        )
        try:
            text = await self.dispatcher.dispatch(prompt, self.temperature)
        except DispatchError as e:
            logger.warning("[%s] No reply this cycle: %s", self.name, e)
            return
        except Exception:
            logger.exception("[%s] Reply generation failed", self.name)
            return

        text = strip_self_attribution(text, self.bot_name)
        if not text:
            logger.warning("[%s] Model returned an empty reply", self.name)
            return

        reply = Message(
            participant_id=constants.BOT_PARTICIPANT_ID,
            display_name=self.bot_name,
            text=text,
        )
        try:
            await self._on_reply(reply)
        except Exception:
            logger.exception("[%s] Failed to deliver reply", self.name)

    async def _notify(self, state: DispatchState) -> None:
        if self._on_state is None:
            return
        try:
            await self._on_state(state)
        except Exception:
            logger.exception("[%s] State observer failed", self.name)

    async def wait_until_idle(self) -> None:
        """Wait for the running cycle, if any, to finish."""
        while self._task is not None:
            await asyncio.shield(self._task)

    async def close(self) -> None:
        """Cancel the running cycle and drop the pending batch."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._pending.clear()
        self.state = DispatchState.IDLE
