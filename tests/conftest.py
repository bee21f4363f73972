"""conftest.py - Shared fixtures for pare tests."""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest
import yaml

from pare.config.settings import Settings
from pare.tools.profiles import reset_profile_cache
from pare.types import ToolDescriptor


@pytest.fixture(autouse=True)
def clean_pare_env(monkeypatch, tmp_path):
    """Isolate every test from PARE_* variables and the user's settings file."""
    for key in list(os.environ):
        if key.startswith("PARE_"):
            monkeypatch.delenv(key, raising=False)
    config_home = tmp_path / "config-home"
    config_home.mkdir()
    monkeypatch.setenv("PARE_CONFIG_HOME", str(config_home))
    Settings().reload()
    reset_profile_cache()
    yield config_home
    Settings().reload()
    reset_profile_cache()


@pytest.fixture
def python():
    """Interpreter used to script child processes portably."""
    return sys.executable


@pytest.fixture
def fake_registry():
    """Registry double that records add_tool() calls by name."""
    registry = MagicMock()
    registry.tools = {}

    def add_tool(fn, name, description):
        registry.tools[name] = {"fn": fn, "description": description}

    registry.add_tool = MagicMock(side_effect=add_tool)
    registry.tool_names = MagicMock(side_effect=lambda: list(registry.tools))
    registry.send_tool_list_changed = AsyncMock()
    return registry


@pytest.fixture
def make_descriptor():
    """Build a ToolDescriptor whose register() adds a no-op tool to the registry."""

    def _make(name, description=None, is_core=False, register=None):
        if register is None:

            def register(registry):
                async def handler():
                    return name

                registry.add_tool(handler, name=name, description=description or name)

            register = MagicMock(side_effect=register)
        return ToolDescriptor(
            name=name,
            description=description or f"{name} tool",
            is_core=is_core,
            register=register,
        )

    return _make


@pytest.fixture
def write_settings(clean_pare_env):
    """Write a user settings.yaml and make Settings pick it up."""

    def _write(data):
        path = clean_pare_env / "pare" / "settings.yaml"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        Settings().reload()
        return path

    return _write
