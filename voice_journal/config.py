"""Configuration constants, environment loading, and the Settings object.

WHY: Centralizes all configurable values so they are easy to find and
override. Credentials and spreadsheet/folder identities come from the
environment (via .env); tuning knobs such as the transcription size
ceiling or the row-scan bound are plain module-level defaults.

HOW: python-dotenv loads the .env file on import. Defaults are read with
os.getenv at import time. load_settings() validates the required values
and freezes everything into a Settings dataclass that the entry point
builds once and hands to every component.

RULES:
- BOT_TOKEN, SHEET_ID and DRIVE_FOLDER_ID are required; missing values
  raise ValueError with the variable name in the message
- Settings is frozen: configuration is immutable after process start
- Credentials are never hardcoded
- SESSION_TTL_SECONDS=0 disables idle session eviction
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from dotenv import load_dotenv

# Load .env from the project root (where the bot is started from)
load_dotenv()

# ---------------------------------------------------------------------------
# Google API scopes
# ---------------------------------------------------------------------------

GOOGLE_SCOPES: Tuple[str, ...] = (
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/cloud-platform",
)

# ---------------------------------------------------------------------------
# Defaults (overridable via environment)
# ---------------------------------------------------------------------------

DEFAULT_CREDENTIALS_FILE = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "credentials.json")
DEFAULT_SHEET_NAME = os.getenv("SHEET_NAME", "Sheet1")
DEFAULT_SPEECH_LANGUAGE = os.getenv("SPEECH_LANGUAGE", "uk-UA")
DEFAULT_SPEECH_FALLBACK_LANGUAGE = os.getenv("SPEECH_FALLBACK_LANGUAGE", "ru-RU")
DEFAULT_TRANSCRIBE_MAX_BYTES = int(os.getenv("TRANSCRIBE_MAX_BYTES", str(1024 * 1024)))
DEFAULT_ROW_SCAN_LIMIT = int(os.getenv("ROW_SCAN_LIMIT", "500"))
DEFAULT_SESSION_TTL_SECONDS = float(os.getenv("SESSION_TTL_SECONDS", "0"))
DEFAULT_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

AUDIO_MIME_TYPE = "audio/ogg"
"""Telegram voice notes are OGG/Opus."""


@dataclass(frozen=True)
class Settings:
    """Process-wide, immutable configuration.

    WHY: Every component (Google adapters, workflow, bot, server) needs a
    slice of the configuration. Passing one frozen object around keeps the
    values consistent and makes tests trivial to configure.

    RULES:
    - Built once by load_settings() at process start
    - webhook_url empty means long-polling mode is the default
    """

    bot_token: str
    sheet_id: str
    drive_folder_id: str
    credentials_file: str = DEFAULT_CREDENTIALS_FILE
    sheet_name: str = DEFAULT_SHEET_NAME
    speech_language: str = DEFAULT_SPEECH_LANGUAGE
    speech_fallback_language: str = DEFAULT_SPEECH_FALLBACK_LANGUAGE
    transcribe_max_bytes: int = DEFAULT_TRANSCRIBE_MAX_BYTES
    row_scan_limit: int = DEFAULT_ROW_SCAN_LIMIT
    session_ttl_seconds: float = DEFAULT_SESSION_TTL_SECONDS
    webhook_url: str = ""
    webhook_secret: str = ""
    log_level: str = DEFAULT_LOG_LEVEL


def _require(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ValueError(
            "{} not configured. Add {} to the .env file or the "
            "environment.".format(name, name)
        )
    return value


def load_settings() -> Settings:
    """Load and validate Settings from the environment.

    WHY: The bot cannot do anything useful without its token and the
    spreadsheet/folder identities, so failing fast at startup with a
    clear message beats a cryptic 404 on the first voice note.

    HOW: Reads required values with _require(), optional ones with
    os.getenv against the module defaults.

    RULES:
    - Raises ValueError naming the first missing required variable
    - Raises ValueError if a numeric knob is not positive where required
    """
    settings = Settings(
        bot_token=_require("BOT_TOKEN"),
        sheet_id=_require("SHEET_ID"),
        drive_folder_id=_require("DRIVE_FOLDER_ID"),
        credentials_file=os.getenv("GOOGLE_APPLICATION_CREDENTIALS", DEFAULT_CREDENTIALS_FILE),
        sheet_name=os.getenv("SHEET_NAME", DEFAULT_SHEET_NAME),
        speech_language=os.getenv("SPEECH_LANGUAGE", DEFAULT_SPEECH_LANGUAGE),
        speech_fallback_language=os.getenv(
            "SPEECH_FALLBACK_LANGUAGE", DEFAULT_SPEECH_FALLBACK_LANGUAGE
        ),
        transcribe_max_bytes=int(
            os.getenv("TRANSCRIBE_MAX_BYTES", str(DEFAULT_TRANSCRIBE_MAX_BYTES))
        ),
        row_scan_limit=int(os.getenv("ROW_SCAN_LIMIT", str(DEFAULT_ROW_SCAN_LIMIT))),
        session_ttl_seconds=float(
            os.getenv("SESSION_TTL_SECONDS", str(DEFAULT_SESSION_TTL_SECONDS))
        ),
        webhook_url=os.getenv("WEBHOOK_URL", "").strip(),
        webhook_secret=os.getenv("WEBHOOK_SECRET", "").strip(),
        log_level=os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
    )

    if settings.row_scan_limit < 1:
        raise ValueError("ROW_SCAN_LIMIT must be at least 1")
    if settings.transcribe_max_bytes < 1:
        raise ValueError("TRANSCRIBE_MAX_BYTES must be at least 1")
    if settings.session_ttl_seconds < 0:
        raise ValueError("SESSION_TTL_SECONDS must not be negative")

    return settings
