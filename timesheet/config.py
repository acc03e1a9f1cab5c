from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DB_PATH = "timesheet.db"


@dataclass(frozen=True, slots=True)
class Config:
    discord_token: str
    guild_id: int
    db_path: Path


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _required_int_env(name: str) -> int:
    value = _required_env(name)
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc

    if parsed <= 0:
        raise ValueError(f"Environment variable {name} must be positive")
    return parsed


def load_config() -> Config:
    db_path = os.getenv("TIMESHEET_DB_PATH", DEFAULT_DB_PATH).strip()
    if not db_path:
        raise ValueError("TIMESHEET_DB_PATH must not be empty")

    return Config(
        discord_token=_required_env("DISCORD_TOKEN"),
        guild_id=_required_int_env("GUILD_ID"),
        db_path=Path(db_path),
    )
