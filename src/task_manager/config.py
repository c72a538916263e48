# src/task_manager/config.py

"""Settings loaded from environment variables (+ optional .env).

- One Settings object for the whole app.
- Only the CLI reads it; TaskManager always receives an explicit store path.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASK_MANAGER"

DEFAULT_DATA_DIR = Path("~/.task-manager")
STORE_FILE_NAME = "tasks.json"
LOG_FILE_NAME = "task-manager.log"


def _setting(suffix: str) -> str | None:
    """Value of TASK_MANAGER_<suffix>, or None when unset or blank."""
    raw = os.getenv(f"{ENV_PREFIX}_{suffix}", "").strip()
    return raw or None


def _setting_flag(suffix: str, default: bool) -> bool:
    raw = _setting(suffix)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _setting_path(suffix: str, default: Path) -> Path:
    raw = _setting(suffix)
    return Path(raw).expanduser() if raw is not None else default.expanduser()


def parse_log_level(name: str, default: int = logging.WARNING) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


@dataclass(frozen=True, slots=True)
class Settings:
    data_dir: Path
    store_path: Path
    log_level: str
    log_to_file: bool
    use_lock: bool

    @property
    def log_file(self) -> Path:
        return self.data_dir / LOG_FILE_NAME

    @staticmethod
    def from_env() -> Settings:
        data_dir = _setting_path("DATA_DIR", DEFAULT_DATA_DIR)
        return Settings(
            data_dir=data_dir,
            store_path=_setting_path("STORE_PATH", data_dir / STORE_FILE_NAME),
            log_level=(_setting("LOG_LEVEL") or "WARNING").upper(),
            log_to_file=_setting_flag("LOG_FILE", True),
            use_lock=_setting_flag("LOCK", True),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings; .env is read on first call."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
