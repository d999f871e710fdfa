"""Default configuration settings for the Agent Room package."""

from __future__ import annotations

# --- Model Configuration ---
DEFAULT_MODELS = ("gpt-4o-mini", "gpt-4.1-mini", "gpt-4.1-nano")
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
REPLY_TEMPERATURE = 0.7  # replies are more exploratory
SUMMARY_TEMPERATURE = 0.3  # summaries stay close to the source

# --- History Configuration ---
MAX_RAW_MESSAGES = 20
SUMMARIZE_AFTER = 30
SUMMARY_MAX_WORDS = 500

# --- Timing (seconds) ---
LLM_INTERVAL = 20.0
PENALTY_DURATION = 60 * 60.0
IDLE_TIMEOUT = 30 * 60.0
SWEEP_INTERVAL = 60.0
ROOM_RETENTION = 10 * 60.0

# --- Participants ---
BOT_PARTICIPANT_ID = "llm"
BOT_NAME = "GodLLM"
COMMAND_SENTINEL = "/"
DEFAULT_ROOM = "lobby"

# --- Server ---
DEFAULT_HOST = "0.0.0.0"  # noqa: S104
DEFAULT_PORT = 3000
