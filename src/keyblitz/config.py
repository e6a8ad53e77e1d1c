"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOME = ".keyblitz"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_TICK_INTERVAL = 0.05
LOG_FILE_NAME = "keyblitz.log"
DB_FILE_NAME = "progress.db"


@dataclass(frozen=True)
class Settings:
    """Where data lives and how chatty logging is."""

    home: Path = Path(DEFAULT_HOME)
    log_level: int = logging.WARNING
    tick_interval: float = DEFAULT_TICK_INTERVAL

    @property
    def db_path(self) -> Path:
        return self.home / DB_FILE_NAME

    @property
    def log_path(self) -> Path:
        return self.home / LOG_FILE_NAME


def parse_log_level(value: str) -> int:
    """Map a level name such as ``debug`` to its logging constant."""
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value}")
    return level


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from ``KEYBLITZ_*`` environment variables."""
    env = os.environ if environ is None else environ
    home = Path(env.get("KEYBLITZ_HOME", "").strip() or DEFAULT_HOME).expanduser()
    log_level = parse_log_level(env.get("KEYBLITZ_LOG_LEVEL", DEFAULT_LOG_LEVEL) or DEFAULT_LOG_LEVEL)

    tick_raw = env.get("KEYBLITZ_TICK_INTERVAL", "").strip()
    tick_interval = DEFAULT_TICK_INTERVAL
    if tick_raw:
        try:
            tick_interval = float(tick_raw)
        except ValueError as exc:
            raise ValueError(f"KEYBLITZ_TICK_INTERVAL must be a number, got {tick_raw!r}") from exc
        if tick_interval <= 0:
            raise ValueError("KEYBLITZ_TICK_INTERVAL must be positive.")

    return Settings(home=home, log_level=log_level, tick_interval=tick_interval)
