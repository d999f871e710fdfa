"""Pydantic models for room configuration and config file loading."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from rich.console import Console

from agent_room import constants

console = Console()

# --- Config File Loading ---

CONFIG_PATH = Path.home() / ".config" / "agent-room" / "config.toml"
CONFIG_PATH_2 = Path("agent-room-config.toml")


def _replace_dashed_keys(cfg: dict[str, Any]) -> dict[str, Any]:
    """Replace dashed keys with underscores in the config options."""
    return {k.replace("-", "_"): v for k, v in cfg.items()}


def load_config(config_path_str: str | None = None) -> dict[str, Any]:
    """Load the TOML configuration file and process it for nested structures."""
    if config_path_str:
        config_path = Path(config_path_str)
    elif CONFIG_PATH.exists():
        config_path = CONFIG_PATH
    elif CONFIG_PATH_2.exists():
        config_path = CONFIG_PATH_2
    else:
        return {}

    if config_path.exists():
        with config_path.open("rb") as f:
            cfg = tomllib.load(f)
            return {k: _replace_dashed_keys(v) for k, v in cfg.items() if isinstance(v, dict)}

    # Report error only if an explicit path was given
    if config_path_str:
        console.print(
            f"[bold red]Config file not found at {config_path_str}[/bold red]",
        )
    return {}


# --- Pydantic Models for Configuration ---


class ModelCandidate(BaseModel):
    """A model the dispatcher may call; lower priority is tried first."""

    model_id: str
    priority: int


class RoomSettings(BaseModel):
    """Process-wide settings shared by every conversation room."""

    models: list[str] = Field(default_factory=lambda: list(constants.DEFAULT_MODELS))
    openai_base_url: str = constants.DEFAULT_OPENAI_BASE_URL
    openai_api_key: str | None = None

    max_raw_messages: int = Field(constants.MAX_RAW_MESSAGES, ge=1)
    summarize_after: int = Field(constants.SUMMARIZE_AFTER, ge=1)
    summary_max_words: int = Field(constants.SUMMARY_MAX_WORDS, ge=1)

    llm_interval: float = Field(constants.LLM_INTERVAL, gt=0)
    penalty_duration: float = Field(constants.PENALTY_DURATION, gt=0)
    reply_temperature: float = Field(constants.REPLY_TEMPERATURE, ge=0.0, le=2.0)
    summary_temperature: float = Field(constants.SUMMARY_TEMPERATURE, ge=0.0, le=2.0)

    command_sentinel: str = constants.COMMAND_SENTINEL
    bot_name: str = constants.BOT_NAME

    idle_timeout: float = Field(constants.IDLE_TIMEOUT, gt=0)
    sweep_interval: float = Field(constants.SWEEP_INTERVAL, gt=0)
    room_retention: float = Field(constants.ROOM_RETENTION, ge=0)

    @field_validator("models")
    @classmethod
    def _strip_models(cls, v: list[str]) -> list[str]:
        models = [m.strip() for m in v if m and m.strip()]
        if not models:
            msg = "at least one model must be configured"
            raise ValueError(msg)
        return models

    @field_validator("openai_base_url")
    @classmethod
    def _normalize_base_url(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("command_sentinel")
    @classmethod
    def _single_character(cls, v: str) -> str:
        if len(v) != 1:
            msg = f"command_sentinel must be a single character, got {v!r}"
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def _check_windows(self) -> RoomSettings:
        if self.summarize_after < self.max_raw_messages:
            msg = (
                f"summarize_after ({self.summarize_after}) must be >= "
                f"max_raw_messages ({self.max_raw_messages})"
            )
            raise ValueError(msg)
        return self

    @property
    def candidates(self) -> list[ModelCandidate]:
        """Return the models as ordered dispatch candidates."""
        return [
            ModelCandidate(model_id=model_id, priority=index)
            for index, model_id in enumerate(self.models)
        ]
