"""Paths and default values used across the project."""

from pathlib import Path

# Per-user data (config.json, .env)
SCHEDPROMPT_HOME = Path.home() / ".schedprompt"
CONFIG_FILE = SCHEDPROMPT_HOME / "config.json"

# Job store lives beside the project being worked on
STORE_DIR_NAME = ".schedprompt"
STORE_FILE_NAME = "schedule-prompts.json"

# Persisted store format version
STORE_VERSION = 1

# Schedule units (milliseconds per unit)
UNIT_MS: dict[str, int] = {
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
}

# Absolute one-shot timestamps closer than this are rejected as too soon
DEFAULT_MIN_LEAD_SECONDS = 5

CRON_FIELD_NAMES = "second minute hour dom month dow"
CRON_EXAMPLE = '"0 * * * * *" for every minute'
