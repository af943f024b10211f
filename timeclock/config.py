from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@dataclass(frozen=True, slots=True)
class Config:
    discord_token: str
    guild_id: int
    owner_user_id: int
    secret: str
    timezone: ZoneInfo
    max_break_minutes: int
    db_path: Path
    history_capacity: int


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


def _optional_int_env(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc

    if parsed <= 0:
        raise ValueError(f"{name} must be positive")
    return parsed


def _timezone_from_env(name: str, default: str) -> ZoneInfo:
    tz_name = os.getenv(name, default).strip() or default
    try:
        return ZoneInfo(tz_name)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"Invalid timezone in {name}: {tz_name}") from exc


def load_config() -> Config:
    return Config(
        discord_token=_required_env("DISCORD_TOKEN"),
        guild_id=_required_int_env("GUILD_ID"),
        owner_user_id=_required_int_env("OWNER_USER_ID"),
        secret=_required_env("TIMECLOCK_SECRET"),
        timezone=_timezone_from_env("TIMEZONE", "UTC"),
        max_break_minutes=_optional_int_env("MAX_BREAK_MINUTES", 60),
        db_path=Path(os.getenv("TIMECLOCK_DB_PATH", "timeclock.db").strip() or "timeclock.db"),
        history_capacity=_optional_int_env("HISTORY_CAPACITY", 30),
    )
