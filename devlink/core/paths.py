"""Centralized path constants for devlink."""

from __future__ import annotations

import os
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT = PACKAGE_ROOT.parent

CONFIG_PATH = PROJECT_ROOT / "config.txt"

LOGS_DIR = PROJECT_ROOT / "logs"
LOG_FILE = LOGS_DIR / "devlink.log"

# Per-user state lives outside the checkout so read-only installs still work.
_STATE_ENV = os.environ.get("DEVLINK_STATE_DIR")
USER_STATE_DIR = Path(_STATE_ENV).expanduser() if _STATE_ENV else (Path.home() / ".devlink")
USER_CONFIG_OVERRIDES_DIR = USER_STATE_DIR / "config_overrides"
LEADER_LOCK_FILE = USER_STATE_DIR / "leader.lock"


def ensure_directories() -> None:
    """Create the log and state directories if they are missing."""
    for directory in (LOGS_DIR, USER_STATE_DIR):
        directory.mkdir(parents=True, exist_ok=True)


__all__ = [
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
    "CONFIG_PATH",
    "LOGS_DIR",
    "LOG_FILE",
    "USER_STATE_DIR",
    "USER_CONFIG_OVERRIDES_DIR",
    "LEADER_LOCK_FILE",
    "ensure_directories",
]
