"""Configuration management for Publify."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

PUBLIFY_HOME = Path(os.environ.get("PUBLIFY_HOME", Path.home() / "publify"))
CONFIG_FILE = PUBLIFY_HOME / "config" / "publify.conf"
DATA_DIR = PUBLIFY_HOME / "data"


@dataclass
class Config:
    """Publify configuration."""

    timezone: str = "America/Toronto"
    # Google Calendar sync
    google_config_folder: str = str(PUBLIFY_HOME / "config" / "google")
    google_client_secret_file: str = ""
    google_target_calendar: str = ""
    sync_timeout_seconds: float = 30.0
    sync_window_past_days: int = 30
    sync_window_future_days: int = 90
    # Reminders
    reminder_interval_seconds: int = 60
    reminder_window_minutes: int = 1
    # Kanban board
    kanban_api_base: str = ""
    kanban_api_token: str = ""
    # Telegram push reminders
    telegram_bot_token: str = ""
    telegram_chat_ids: list[int] = field(default_factory=list)
    log_level: str = "INFO"


def _strip_value(value: str) -> str:
    """Unquote a value and drop inline comments."""
    if value[:1] in ('"', "'"):
        quote = value[0]
        end_quote = value.find(quote, 1)
        return value[1:end_quote] if end_quote != -1 else value[1:]
    if "#" in value:
        value = value.split("#")[0].strip()
    return value


def _number(key: str, value: str, default, kind=int):
    try:
        return kind(value)
    except ValueError:
        logger.warning(f"Invalid number for {key.upper()}: {value!r}, keeping {default}")
        return default


def parse_config(text: str) -> Config:
    """Parse KEY=value lines into a Config."""
    config = Config()

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip().lower()
        value = _strip_value(value.strip())

        match key:
            case "timezone":
                config.timezone = value
            case "google_config_folder":
                config.google_config_folder = value
            case "google_client_secret_file":
                config.google_client_secret_file = value
            case "google_target_calendar":
                config.google_target_calendar = value
            case "sync_timeout_seconds":
                config.sync_timeout_seconds = _number(key, value, config.sync_timeout_seconds, float)
            case "sync_window_past_days":
                config.sync_window_past_days = _number(key, value, config.sync_window_past_days)
            case "sync_window_future_days":
                config.sync_window_future_days = _number(key, value, config.sync_window_future_days)
            case "reminder_interval_seconds":
                config.reminder_interval_seconds = _number(key, value, config.reminder_interval_seconds)
            case "reminder_window_minutes":
                config.reminder_window_minutes = _number(key, value, config.reminder_window_minutes)
            case "kanban_api_base":
                config.kanban_api_base = value
            case "kanban_api_token":
                config.kanban_api_token = value
            case "telegram_bot_token":
                config.telegram_bot_token = value
            case "telegram_chat_ids":
                try:
                    config.telegram_chat_ids = [int(c.strip()) for c in value.split(",") if c.strip()]
                except ValueError:
                    logger.warning(f"Invalid TELEGRAM_CHAT_IDS: {value!r}")
            case "log_level":
                config.log_level = value.upper()

    return config


def load_config() -> Config:
    """Load configuration from publify.conf file."""
    if not CONFIG_FILE.exists():
        return Config()
    return parse_config(CONFIG_FILE.read_text())
