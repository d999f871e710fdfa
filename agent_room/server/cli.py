"""CLI command that runs the chat server."""

from __future__ import annotations

import logging
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console

from agent_room import constants, opts
from agent_room.cli import app
from agent_room.config import RoomSettings
from agent_room.server.common import setup_rich_logging

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


def build_settings(**overrides: object) -> RoomSettings:
    """Build settings from CLI values, ignoring options left unset."""
    return RoomSettings(**{k: v for k, v in overrides.items() if v is not None})


@app.command("serve")
def serve(
    host: Annotated[
        str,
        typer.Option("--host", help="Host to bind the server to", envvar="AGENT_ROOM_HOST"),
    ] = constants.DEFAULT_HOST,
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Port to bind the server to", envvar="AGENT_ROOM_PORT"),
    ] = constants.DEFAULT_PORT,
    model: Annotated[
        list[str] | None,
        typer.Option(
            "--model",
            "-m",
            help="Model id in fallback order (repeat for more). "
            f"Default: {', '.join(constants.DEFAULT_MODELS)}",
            envvar="AGENT_ROOM_MODELS",
            rich_help_panel="Provider Configuration",
        ),
    ] = None,
    openai_base_url: str | None = opts.OPENAI_BASE_URL,
    openai_api_key: str | None = opts.OPENAI_API_KEY,
    max_raw_messages: Annotated[
        int,
        typer.Option(
            "--max-raw-messages",
            help="Messages kept verbatim after a compaction",
            envvar="AGENT_ROOM_MAX_RAW_MESSAGES",
            rich_help_panel="History Configuration",
        ),
    ] = constants.MAX_RAW_MESSAGES,
    summarize_after: Annotated[
        int,
        typer.Option(
            "--summarize-after",
            help="History length that triggers a compaction",
            envvar="AGENT_ROOM_SUMMARIZE_AFTER",
            rich_help_panel="History Configuration",
        ),
    ] = constants.SUMMARIZE_AFTER,
    llm_interval: Annotated[
        float,
        typer.Option(
            "--llm-interval",
            help="Minimum seconds between two generated replies",
            envvar="AGENT_ROOM_LLM_INTERVAL",
            rich_help_panel="Timing",
        ),
    ] = constants.LLM_INTERVAL,
    penalty_duration: Annotated[
        float,
        typer.Option(
            "--penalty-duration",
            help="Seconds a rate-limited model is skipped",
            envvar="AGENT_ROOM_PENALTY_DURATION",
            rich_help_panel="Timing",
        ),
    ] = constants.PENALTY_DURATION,
    bot_name: Annotated[
        str,
        typer.Option(
            "--bot-name",
            help="Display name of the model participant",
            envvar="AGENT_ROOM_BOT_NAME",
        ),
    ] = constants.BOT_NAME,
    log_level: str = opts.LOG_LEVEL,
    config_file: str | None = opts.CONFIG_FILE,  # noqa: ARG001
) -> None:
    """Run the chat server.

    Clients connect to ``/ws?room=<name>`` and exchange JSON frames. One
    model reply is generated per cooldown window for all messages that
    arrived in it; rate-limited models are skipped for
    ``--penalty-duration`` seconds.

    Example:
        agent-room serve --port 3000 -m gpt-4o-mini -m gpt-4.1-mini

    """
    setup_rich_logging(log_level)

    try:
        settings = build_settings(
            models=model or None,
            openai_base_url=openai_base_url,
            openai_api_key=openai_api_key,
            max_raw_messages=max_raw_messages,
            summarize_after=summarize_after,
            llm_interval=llm_interval,
            penalty_duration=penalty_duration,
            bot_name=bot_name,
        )
    except ValidationError as e:
        err_console.print("[bold red]Error:[/bold red] invalid configuration")
        for error in e.errors():
            loc = ".".join(str(part) for part in error["loc"]) or "settings"
            err_console.print(f"  [red]{loc}[/red]: {error['msg']}")
        raise typer.Exit(1) from e

    import uvicorn  # noqa: PLC0415

    from agent_room.server.api import create_app  # noqa: PLC0415

    console.print(f"[bold green]Starting Agent Room on {host}:{port}[/bold green]")
    console.print(f"  Models: [blue]{' -> '.join(settings.models)}[/blue]")
    console.print(f"  Backend: [blue]{settings.openai_base_url}[/blue]")
    console.print(
        f"  History: [blue]{settings.max_raw_messages}[/blue] verbatim, "
        f"summarize after [blue]{settings.summarize_after}[/blue]",
    )
    console.print(f"  Reply interval: [blue]{settings.llm_interval:g}s[/blue]")
    console.print()
    console.print("[bold]Endpoints:[/bold]")
    console.print(f"  WS   ws://{host}:{port}/ws?room={constants.DEFAULT_ROOM}")
    console.print(f"  GET  http://{host}:{port}/health")
    console.print(f"  GET  http://{host}:{port}/status?room={constants.DEFAULT_ROOM}")
    console.print()

    fastapi_app = create_app(settings)
    uvicorn.run(fastapi_app, host=host, port=port, log_config=None)
