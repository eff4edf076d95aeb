"""Layered ``key = value`` configuration.

A config file is read first, then the user's override file for it (kept
under the per-user state directory so read-only installs can still be
tuned). Later layers win key by key.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

import aiofiles

from devlink.core.logging_utils import get_module_logger
from .paths import PROJECT_ROOT, USER_CONFIG_OVERRIDES_DIR

logger = get_module_logger("ConfigManager")

ConfigDict = Dict[str, str]
T = TypeVar("T")

_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
_QUOTES = ("'", '"')


def parse_config_text(lines: Iterable[str]) -> ConfigDict:
    """Parse ``key = value`` lines; ``#`` starts a comment, quotes are stripped."""
    parsed: ConfigDict = {}
    for line in lines:
        text = line.strip()
        if text.startswith("#"):
            continue
        name, sep, raw = text.partition("=")
        if not sep:
            continue
        value = raw.split("#", 1)[0].strip()
        if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
            value = value[1:-1]
        parsed[name.strip()] = value
    return parsed


class ConfigManager:

    def __init__(self, overrides_dir: Path = USER_CONFIG_OVERRIDES_DIR):
        self._overrides_dir = overrides_dir
        self._project_root = PROJECT_ROOT.resolve()

    def override_path_for(self, config_path: Path) -> Path:
        """Project files are mirrored under the overrides dir; others get a hashed name."""
        try:
            relative = config_path.resolve().relative_to(self._project_root)
        except ValueError:
            tag = hashlib.sha1(str(config_path).encode("utf-8")).hexdigest()[:10]
            stem = re.sub(r"[^a-zA-Z0-9._-]+", "_", config_path.stem or "config")
            relative = Path("external") / f"{stem}_{tag}{config_path.suffix or '.txt'}"
        return self._overrides_dir / relative

    def _layers(self, config_path: Path) -> List[Path]:
        return [config_path, self.override_path_for(config_path)]

    # ------------------------------------------------------------------
    # Reading

    @staticmethod
    def _read_lines(path: Path) -> List[str]:
        try:
            return path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error("Failed to read config %s: %s", path, e)
            return []

    @staticmethod
    async def _read_lines_async(path: Path) -> List[str]:
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as fh:
                return await fh.readlines()
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error("Failed to read config %s: %s", path, e)
            return []

    def read_config(self, config_path: Path) -> ConfigDict:
        """Blocking read for startup code that runs before the event loop."""
        merged: ConfigDict = {}
        for layer in self._layers(config_path):
            merged.update(parse_config_text(self._read_lines(layer)))
        return merged

    async def read_config_async(self, config_path: Path) -> ConfigDict:
        merged: ConfigDict = {}
        for layer in self._layers(config_path):
            merged.update(parse_config_text(await self._read_lines_async(layer)))
        return merged

    # ------------------------------------------------------------------
    # Typed getters

    @staticmethod
    def _coerce(config: ConfigDict, key: str, default: T, convert: Callable[[str], T]) -> T:
        raw = config.get(key)
        if raw is None:
            return default
        try:
            return convert(raw)
        except ValueError:
            logger.warning("Ignoring invalid value %r for %s, using %r", raw, key, default)
            return default

    def get_bool(self, config: ConfigDict, key: str, default: bool = False) -> bool:
        return self._coerce(config, key, default, lambda raw: raw.lower() in _TRUE_WORDS)

    def get_int(self, config: ConfigDict, key: str, default: int = 0) -> int:
        """Integers may be written in decimal or with a 0x/0o/0b prefix."""
        return self._coerce(config, key, default, lambda raw: int(raw, 0))

    def get_float(self, config: ConfigDict, key: str, default: float = 0.0) -> float:
        return self._coerce(config, key, default, float)

    def get_str(self, config: ConfigDict, key: str, default: str = "") -> str:
        return config.get(key, default)


_shared: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    global _shared
    if _shared is None:
        _shared = ConfigManager()
    return _shared


__all__ = ["ConfigManager", "ConfigDict", "parse_config_text", "get_config_manager"]
