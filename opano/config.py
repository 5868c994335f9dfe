"""
Opano — Centralized configuration.

Loads all settings from .env and validates placeholder values.
Every other module reads its defaults from here.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from opano/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Workspace
    APP_BASE_URL: str = "http://localhost:9002"
    WORKSPACE_NAME: str = "Opano"
    INVITATION_TTL_HOURS: int = 72    # 0 → invitations never expire

    # LLM provider: gemini, anthropic, openai or cohere
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""        # empty → summaries unavailable

    # Mail transport (SMTP)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = ""
    SMTP_FROM_NAME: str = "Opano App"
    SMTP_USE_SSL: bool = True

    # Telegram admin notifications (optional)
    TELEGRAM_BOT_TOKEN: str = ""
    ADMIN_CHAT_IDS: list[int] = []

    # Attendance
    ATTENDANCE_TICK_SECONDS: float = 1.0

    LOG_LEVEL: str = "INFO"

    @field_validator("ADMIN_CHAT_IDS", mode="before")
    @classmethod
    def parse_chat_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(cid.strip()) for cid in v.split(",") if cid.strip()]
        return []

    @field_validator("INVITATION_TTL_HOURS", "SMTP_PORT", mode="before")
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)

    @field_validator("SMTP_USE_SSL", mode="before")
    @classmethod
    def parse_bool(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")


def _load_settings() -> Settings:
    """Load settings from environment, rejecting unfilled placeholders."""
    for key in ("LLM_API_KEY", "SMTP_PASSWORD", "TELEGRAM_BOT_TOKEN"):
        if os.getenv(key, "").startswith("your-"):
            print(f"ERROR: {key} still holds a placeholder value in .env", file=sys.stderr)
            sys.exit(1)

    return Settings(
        APP_BASE_URL=os.getenv("APP_BASE_URL", "http://localhost:9002").rstrip("/"),
        WORKSPACE_NAME=os.getenv("WORKSPACE_NAME", "Opano"),
        INVITATION_TTL_HOURS=os.getenv("INVITATION_TTL_HOURS", "72"),
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=os.getenv("LLM_API_KEY", ""),
        SMTP_HOST=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        SMTP_PORT=os.getenv("SMTP_PORT", "465"),
        SMTP_USERNAME=os.getenv("SMTP_USERNAME", ""),
        SMTP_PASSWORD=os.getenv("SMTP_PASSWORD", ""),
        SMTP_FROM_EMAIL=os.getenv("SMTP_FROM_EMAIL", ""),
        SMTP_FROM_NAME=os.getenv("SMTP_FROM_NAME", "Opano App"),
        SMTP_USE_SSL=os.getenv("SMTP_USE_SSL", "true"),
        TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        ADMIN_CHAT_IDS=os.getenv("ADMIN_CHAT_IDS", ""),
        ATTENDANCE_TICK_SECONDS=float(os.getenv("ATTENDANCE_TICK_SECONDS", "1.0")),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton, imported by all other modules as:
#   from opano.config import settings
settings = _load_settings()
