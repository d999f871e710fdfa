"""Shared Typer options for the Agent Room CLI and config-file defaults."""

from __future__ import annotations

from typing import Any

import typer

from agent_room.config import load_config

# Config keys named after ``RoomSettings`` fields whose CLI option differs.
_CONFIG_ALIASES = {"models": "model"}


def _apply_aliases(section: dict[str, Any]) -> dict[str, Any]:
    return {_CONFIG_ALIASES.get(key, key): value for key, value in section.items()}


def set_config_defaults(ctx: typer.Context, config_file: str | None) -> None:
    """Use the ``[defaults]`` table, overlaid by the subcommand's table, as CLI defaults.

    Args:
        ctx: Context of the command being parsed.
        config_file: Explicit config path, or None to search the default locations.

    """
    config = load_config(config_file)
    defaults = _apply_aliases(config.get("defaults", {}))
    # Runs while the subcommand parses, so ctx.command is the subcommand.
    subcommand = ctx.command.name
    if subcommand:
        defaults.update(_apply_aliases(config.get(subcommand, {})))
    ctx.default_map = defaults


def _conf_callback(
    ctx: typer.Context,
    _param: typer.CallbackParam,
    value: str | None,
) -> str | None:
    set_config_defaults(ctx, value)
    return value


# --- General Options ---
CONFIG_FILE: str | None = typer.Option(
    None,
    "--config",
    help="Path to a TOML configuration file.",
    is_eager=True,
    callback=_conf_callback,
    rich_help_panel="General Options",
)
LOG_LEVEL: str = typer.Option(
    "info",
    "--log-level",
    help="Logging level (debug, info, warning, error).",
    envvar="AGENT_ROOM_LOG_LEVEL",
    rich_help_panel="General Options",
)

# --- Provider Options ---
OPENAI_BASE_URL: str | None = typer.Option(
    None,
    "--openai-base-url",
    help="Base URL of an OpenAI-compatible API (OpenAI, OpenRouter, Gemini, Ollama).",
    envvar="OPENAI_BASE_URL",
    rich_help_panel="Provider Configuration",
)
OPENAI_API_KEY: str | None = typer.Option(
    None,
    "--openai-api-key",
    help="API key for the provider.",
    envvar="OPENAI_API_KEY",
    rich_help_panel="Provider Configuration",
)
