"""
Settings - Configuration Manager

Two-layer configuration:
- System: built-in defaults (``DEFAULT_SETTINGS`` below)
- User:   $PARE_CONFIG_HOME/pare/settings.yaml
          (falls back to $XDG_CONFIG_HOME, then ~/.config)

get_setting() returns merged effective values using dot notation. The user
layer overrides the system layer key by key (deep merge).

Settings are read once and are read-only afterwards; concurrent tool calls
only ever read them. Security policy (allowed commands, allowed roots, tool
filters) is deliberately NOT read from here; it comes from PARE_* environment
variables, see ``pare.policy.config`` and ``pare.tools.filter``.
"""

from __future__ import annotations

import copy
import os
import threading
from pathlib import Path
from typing import Any

import yaml

from .logging import get_logger

logger = get_logger("pare.config.settings")

DEFAULT_SETTINGS: dict[str, Any] = {
    "runner": {
        "default_timeout_ms": 60_000,
        "max_buffer_bytes": 10 * 1024 * 1024,
        "kill_grace_ms": 2_000,
        "read_chunk_bytes": 64 * 1024,
    },
    "output": {
        "compact_multiplier": 1.0,
        "chars_per_token": 4,
    },
    "sanitize": {
        "all_paths": False,
    },
}


def config_home() -> Path:
    """Directory holding the ``pare/`` config folder."""
    explicit = os.environ.get("PARE_CONFIG_HOME")
    if explicit:
        return Path(explicit).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg).expanduser()
    return Path.home() / ".config"


class Settings:
    """
    Unified Settings Manager.

    Logic:
    1. Start from DEFAULT_SETTINGS.
    2. Load user overrides from ``<config_home>/pare/settings.yaml``.
    3. Merge User > Defaults.
    """

    _instance: Settings | None = None
    _instance_lock = threading.Lock()

    def __new__(cls) -> Settings:
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._data = {}
                    instance._loaded = False
                    cls._instance = instance
        return cls._instance

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            with self._instance_lock:
                if not self._loaded:
                    self._load()
                    self._loaded = True

    def _load(self) -> None:
        defaults = copy.deepcopy(DEFAULT_SETTINGS)
        user_path = config_home() / "pare" / "settings.yaml"
        user_config: dict[str, Any] = {}
        if user_path.exists():
            user_config = self._read_yaml(user_path)
            logger.debug("settings.loaded", path=str(user_path))
        self._data = self._deep_merge(defaults, user_config)

    def _read_yaml(self, path: Path) -> dict[str, Any]:
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            logger.warning("settings.unreadable", path=str(path), error=str(e))
            return {}
        if not isinstance(loaded, dict):
            logger.warning("settings.ignored", path=str(path), reason="top level is not a mapping")
            return {}
        return loaded

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Recursive merge; override values replace base values."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value using dot notation (e.g., 'runner.kill_grace_ms')."""
        self._ensure_loaded()
        value: Any = self._data
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return default
            value = value[part]
        return value

    def reload(self) -> None:
        """Drop cached values; the next get() re-reads the config file."""
        with self._instance_lock:
            self._data = {}
            self._loaded = False

    @property
    def data(self) -> dict[str, Any]:
        self._ensure_loaded()
        return copy.deepcopy(self._data)


def get_setting(key: str, default: Any = None) -> Any:
    """Shorthand for ``Settings().get(key, default)``."""
    return Settings().get(key, default)


__all__ = ["DEFAULT_SETTINGS", "Settings", "config_home", "get_setting"]
