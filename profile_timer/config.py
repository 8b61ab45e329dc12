from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path


DEFAULT_PROFILES_PATH = Path("data") / "profiles.yaml"
DEFAULT_RELOAD_SIGNAL_PATH = Path("data") / "profile_timer_reload.signal"
DEFAULT_STATUS_PATH = Path("logs") / "profile_timer_status.json"

ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


@dataclass(frozen=True)
class TimerSettings:
    profiles_path: Path
    refresh_seconds: int
    tick_seconds: int
    reload_signal_path: Path
    status_path: Path
    timezone: str | None
    refresh_cmd: list[str]
    apply_cmd: list[str]
    log_level: str


def _env_path(name: str, default: Path) -> Path:
    raw = os.environ.get(name, "").strip()
    return Path(raw).expanduser() if raw else default


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = os.environ.get(name, "").strip()
    try:
        v = int(raw) if raw else default
    except ValueError:
        v = default
    return max(minimum, v)


def _env_cmd(name: str) -> list[str]:
    raw = os.environ.get(name, "").strip()
    return shlex.split(raw) if raw else []


def _normalize_log_level(v: str) -> str:
    vv = (v or "INFO").strip().upper()
    return vv if vv in ALLOWED_LOG_LEVELS else "INFO"


def get_timer_settings() -> TimerSettings:
    return TimerSettings(
        profiles_path=_env_path("PROFILE_TIMER_PROFILES_PATH", DEFAULT_PROFILES_PATH),
        refresh_seconds=_env_int("PROFILE_TIMER_REFRESH_SECONDS", 60),
        tick_seconds=_env_int("PROFILE_TIMER_TICK_SECONDS", 5),
        reload_signal_path=_env_path("PROFILE_TIMER_RELOAD_SIGNAL", DEFAULT_RELOAD_SIGNAL_PATH),
        status_path=_env_path("PROFILE_TIMER_STATUS_PATH", DEFAULT_STATUS_PATH),
        timezone=os.environ.get("PROFILE_TIMER_TIMEZONE", "").strip() or None,
        refresh_cmd=_env_cmd("PROFILE_TIMER_REFRESH_CMD"),
        apply_cmd=_env_cmd("PROFILE_TIMER_APPLY_CMD"),
        log_level=_normalize_log_level(os.environ.get("PROFILE_TIMER_LOG_LEVEL", "INFO")),
    )
