# src/stepscript/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole run (normal "settings layer").
- Every value has a default; a bad value falls back to it instead of failing.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "STEPSCRIPT"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _default_shell() -> str:
    return "powershell" if sys.platform == "win32" else "/bin/bash"


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str = "stepscript"
    log_level: str = "INFO"
    log_dir: Path = Path(".local/stepscript")
    log_to_file: bool = False

    # ---- Operations ----
    default_shell: str = "/bin/bash"
    fetch_timeout_seconds: float = 30.0

    # ---- Runner ----
    stall_timeout_seconds: float = 0.0  # 0 = wait forever
    watch_interval_seconds: float = 1.0
    show_task_tree: bool = False

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            app_name=_env(_k("APP_NAME"), "stepscript") or "stepscript",
            log_level=_env(_k("LOG_LEVEL"), "INFO").upper(),
            log_dir=_env_path(_k("LOG_DIR"), Path(".local/stepscript")),
            log_to_file=_env_bool(_k("LOG_TO_FILE"), False),
            default_shell=_env(_k("SHELL"), _default_shell()) or _default_shell(),
            fetch_timeout_seconds=max(0.1, _env_float(_k("FETCH_TIMEOUT_SECONDS"), 30.0)),
            stall_timeout_seconds=max(0.0, _env_float(_k("STALL_TIMEOUT_SECONDS"), 0.0)),
            watch_interval_seconds=max(0.05, _env_float(_k("WATCH_INTERVAL_SECONDS"), 1.0)),
            show_task_tree=_env_bool(_k("SHOW_TASK_TREE"), False),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Load .env (without overriding real env vars) and build settings once."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
