"""
RemindList — Centralized configuration.

Loads all settings from .env and validates required keys. Only the
composition root (bot/telegram_bot.py) reads these; core modules receive
their collaborators and timezone as constructor arguments.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from remindlist/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # Table store: "sheets" | "memory"
    STORE_PROVIDER: str = "sheets"
    STORE_MAX_RETRIES: int = 3

    # Google Sheets (only needed when STORE_PROVIDER=sheets)
    GOOGLE_SERVICE_ACCOUNT_FILE: str = "service_account.json"
    GOOGLE_SPREADSHEET_ID: str = ""

    # Scheduling
    TIMEZONE: str = "Asia/Tokyo"
    METADATA_CACHE_TTL_SECONDS: float = 5.0
    SWEEP_INTERVAL_SECONDS: int = 60

    DEFAULT_LIST_TITLE: str = "Reminders"

    # Security
    ALLOWED_CHAT_IDS: list[int] = []

    @field_validator("ALLOWED_CHAT_IDS", mode="before")
    @classmethod
    def parse_chat_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(cid.strip()) for cid in v.split(",") if cid.strip()]
        return []

    @field_validator("STORE_PROVIDER")
    @classmethod
    def check_provider(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("sheets", "memory"):
            raise ValueError(f"STORE_PROVIDER must be 'sheets' or 'memory', got {v!r}")
        return v

    @field_validator("TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown TIMEZONE {v!r}") from exc
        return v

    @field_validator("SWEEP_INTERVAL_SECONDS", "STORE_MAX_RETRIES", mode="before")
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    provider = os.getenv("STORE_PROVIDER", "sheets")
    spreadsheet_id = os.getenv("GOOGLE_SPREADSHEET_ID", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    if provider.strip().lower() == "sheets" and not spreadsheet_id:
        print("ERROR: GOOGLE_SPREADSHEET_ID is required when STORE_PROVIDER=sheets", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        STORE_PROVIDER=provider,
        STORE_MAX_RETRIES=os.getenv("STORE_MAX_RETRIES", "3"),
        GOOGLE_SERVICE_ACCOUNT_FILE=os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE", "service_account.json"),
        GOOGLE_SPREADSHEET_ID=spreadsheet_id,
        TIMEZONE=os.getenv("TIMEZONE", "Asia/Tokyo"),
        METADATA_CACHE_TTL_SECONDS=os.getenv("METADATA_CACHE_TTL_SECONDS", "5"),
        SWEEP_INTERVAL_SECONDS=os.getenv("SWEEP_INTERVAL_SECONDS", "60"),
        DEFAULT_LIST_TITLE=os.getenv("DEFAULT_LIST_TITLE", "Reminders"),
        ALLOWED_CHAT_IDS=os.getenv("ALLOWED_CHAT_IDS", ""),
    )


# Singleton — imported by the composition root as:
#   from remindlist.config import settings
settings = _load_settings()
