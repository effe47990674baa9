"""
Centralized settings reader for Cloud Janitor.

Reads all configuration from environment variables (loaded from .env file).
Import the `settings` singleton from anywhere in the project:

    from config.settings import settings
    print(settings.JANITOR_RETENTION_DAYS)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from janitor.errors import InvalidConfiguration

# Load .env from project root
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)


def _env(key: str, default: str = "") -> str:
    """Read an environment variable with an optional default."""
    return os.getenv(key, default)


def _env_int(key: str, default: int) -> int:
    """Read an integer environment variable, raising InvalidConfiguration on junk."""
    raw = _env(key).strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidConfiguration(f"{key} must be an integer, got {raw!r}") from exc


def _env_list(key: str, default: str = "") -> tuple[str, ...]:
    """Read a comma-separated environment variable into a tuple of stripped items."""
    return tuple(item.strip() for item in _env(key, default).split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Immutable application settings populated from environment variables."""

    # ── Janitor rules ───────────────────────────────────
    JANITOR_RETENTION_DAYS: int = field(default_factory=lambda: _env_int("JANITOR_RETENTION_DAYS", 3))
    JANITOR_REQUIRED_TAGS: tuple[str, ...] = field(
        default_factory=lambda: _env_list("JANITOR_REQUIRED_TAGS", "owner")
    )

    # ── Business calendar ───────────────────────────────
    JANITOR_HOLIDAYS: tuple[str, ...] = field(default_factory=lambda: _env_list("JANITOR_HOLIDAYS"))
    JANITOR_TIMEZONE: str = field(default_factory=lambda: _env("JANITOR_TIMEZONE", "UTC"))


# Singleton, import this everywhere
settings = Settings()
