"""test_profiles.py - Preset profiles and core tools."""

from unittest.mock import MagicMock

import pytest

from pare.tools import profiles
from pare.tools.profiles import CORE_TOOLS, PROFILES, is_core_tool_for_server, reset_profile_cache, resolve_profile


class TestProfiles:
    def test_known_profiles(self):
        assert set(PROFILES) == {"minimal", "web", "python", "devops", "rust", "go", "full"}

    def test_full_is_unfiltered(self):
        assert PROFILES["full"] is None

    @pytest.mark.parametrize("name", ["minimal", "web", "python", "devops", "rust", "go"])
    def test_entries_are_qualified_and_unique(self, name):
        entries = PROFILES[name]

        assert len(entries) == len(set(entries))
        assert all(entry.count(":") == 1 for entry in entries)
        assert "process:run" in entries

    def test_minimal_is_smallest(self):
        sizes = {name: len(tools) for name, tools in PROFILES.items() if tools is not None}

        assert min(sizes, key=sizes.get) == "minimal"


class TestResolveProfile:
    def test_unset(self):
        assert resolve_profile() is None

    def test_named_profile(self, monkeypatch):
        monkeypatch.setenv("PARE_PROFILE", "Rust")

        resolved = resolve_profile()

        assert "cargo:build" in resolved
        assert "docker:ps" not in resolved

    def test_full(self, monkeypatch):
        monkeypatch.setenv("PARE_PROFILE", "full")

        assert resolve_profile() is None

    def test_unknown_profile_warns_and_is_ignored(self, monkeypatch):
        mock_logger = MagicMock()
        monkeypatch.setattr(profiles, "logger", mock_logger)
        monkeypatch.setenv("PARE_PROFILE", "gaming")

        assert resolve_profile() is None
        assert mock_logger.warning.call_args.args[0] == "profile.unknown"

    def test_cached_until_reset(self, monkeypatch):
        monkeypatch.setenv("PARE_PROFILE", "minimal")
        first = resolve_profile()
        monkeypatch.setenv("PARE_PROFILE", "go")

        assert resolve_profile() is first

        reset_profile_cache()
        assert "go:build" in resolve_profile()


class TestCoreTools:
    def test_core_tool(self):
        assert is_core_tool_for_server("git", "status")

    def test_non_core_tool(self):
        assert not is_core_tool_for_server("git", "tag")

    def test_unknown_server_treats_all_as_core(self):
        assert is_core_tool_for_server("custom", "anything")

    def test_process_server(self):
        assert CORE_TOOLS["process"] == ("run",)
