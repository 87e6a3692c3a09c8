"""
Configuration for the session hooks.

Values come from the environment (optionally seeded from a ``.env`` file)
and are collected into a ``HookConfig`` that is built fresh per process.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv, find_dotenv


MILESTONE_INTERVAL = 50
DEFAULT_STATE_DIR = ".cursor"


def load_env():
    _ = load_dotenv(find_dotenv(usecwd=True))


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


@dataclass
class HookConfig:
    """Settings shared by every lifecycle hook."""

    home_dir: Path = field(default_factory=Path.home)
    state_dir_name: str = DEFAULT_STATE_DIR
    milestone_interval: int = MILESTONE_INTERVAL
    recent_days: int = 7  # Recent-session window at session start
    recent_limit: int = 50
    memory_max_lines: int = 200
    which_timeout: float = 0.5  # Seconds before a binary lookup counts as missing

    @property
    def state_root(self) -> Path:
        return self.home_dir / self.state_dir_name


def get_config(home_dir: Optional[Path] = None) -> HookConfig:
    """
    Build a HookConfig from the environment.

    Args:
        home_dir: Explicit home directory, overriding SESSIONKEEPER_HOME

    Returns:
        A new HookConfig
    """
    load_env()

    home = home_dir or os.getenv("SESSIONKEEPER_HOME")
    return HookConfig(
        home_dir=Path(home).expanduser() if home else Path.home(),
        state_dir_name=os.getenv("SESSIONKEEPER_STATE_DIR") or DEFAULT_STATE_DIR,
        milestone_interval=max(1, _int_env("SESSIONKEEPER_MILESTONE_INTERVAL", MILESTONE_INTERVAL)),
        recent_days=_int_env("SESSIONKEEPER_RECENT_DAYS", 7),
        recent_limit=_int_env("SESSIONKEEPER_RECENT_LIMIT", 50),
        memory_max_lines=_int_env("SESSIONKEEPER_MEMORY_MAX_LINES", 200),
        which_timeout=_float_env("SESSIONKEEPER_WHICH_TIMEOUT", 0.5),
    )
